from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from profile_sync.models.user import Identity, ProfileRecord


class SignedOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["signed_out"] = "signed_out"


class SigningIn(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["signing_in"] = "signing_in"


class SignedIn(BaseModel):
    """A loaded session.

    ``editing`` and ``pendingDisplayName`` move together; ``saving`` is set
    while a display name write issued in this session is outstanding.
    """

    model_config = ConfigDict(frozen=True)

    status: Literal["signed_in"] = "signed_in"
    identity: Identity
    profile: ProfileRecord
    editing: bool = False
    pendingDisplayName: str | None = None
    saving: bool = False

    @model_validator(mode="after")
    def _check_consistency(self) -> "SignedIn":
        if self.profile.id != self.identity.id:
            raise ValueError("profile id does not match identity id")
        if self.editing != (self.pendingDisplayName is not None):
            raise ValueError("pendingDisplayName must be set exactly while editing")
        return self

    def evolve(self, **changes: Any) -> "SignedIn":
        return SignedIn(**{**dict(self), **changes})


SessionState = Annotated[
    Union[SignedOut, SigningIn, SignedIn],
    Field(discriminator="status"),
]


class Notice(BaseModel):
    """One user-facing notification."""

    model_config = ConfigDict(frozen=True)

    level: Literal["info", "error"]
    message: str
    error: str | None = None
