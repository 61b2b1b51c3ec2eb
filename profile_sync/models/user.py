from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from profile_sync.core.constants import DEFAULT_DISPLAY_NAME, MAX_DISPLAY_NAME_LENGTH


class Identity(BaseModel):
    """Credential bundle handed back by the identity provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ""
    photoUrl: str = ""
    token: str = Field(default="", exclude=True, repr=False)


class AuthenticatedPrincipal(BaseModel):
    model_config = ConfigDict(frozen=True)

    uid: str
    email: str | None = None
    customToken: str = Field(default="", exclude=True, repr=False)


class ProfileRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ""
    photoUrl: str = ""
    displayName: str = DEFAULT_DISPLAY_NAME

    @classmethod
    def default_for(cls, identity: Identity) -> "ProfileRecord":
        return cls(
            id=identity.id,
            email=identity.email,
            photoUrl=identity.photoUrl,
            displayName=DEFAULT_DISPLAY_NAME,
        )

    @classmethod
    def from_document(cls, doc_id: str, payload: Dict[str, Any]) -> "ProfileRecord":
        # Records written by the mobile client store the photo as profileImageUrl.
        photo = payload.get("photoUrl") or payload.get("profileImageUrl") or ""
        return cls(
            id=doc_id,
            email=payload.get("email") or "",
            photoUrl=photo,
            displayName=payload.get("displayName") or DEFAULT_DISPLAY_NAME,
        )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id"})


def validate_display_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Display name cannot be empty")
    if len(cleaned) > MAX_DISPLAY_NAME_LENGTH:
        raise ValueError(
            f"Display name must be at most {MAX_DISPLAY_NAME_LENGTH} characters"
        )
    return cleaned
