from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Protocol

from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from google.auth import exceptions as google_auth_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

from profile_sync.core.crypto import SessionCache
from profile_sync.core.errors import ExchangeFailed, ProviderError
from profile_sync.models.user import AuthenticatedPrincipal, Identity


logger = logging.getLogger(__name__)

TokenVerifier = Callable[[str], Dict[str, Any]]


class IdentityProvider(Protocol):
    async def begin_interactive_sign_in(self) -> Identity | None: ...

    async def revoke_session(self) -> None: ...

    async def current_session(self) -> Identity | None: ...


class CredentialExchange(Protocol):
    async def exchange(self, identity: Identity) -> AuthenticatedPrincipal: ...


def _identity_from_claims(claims: Dict[str, Any], raw_token: str) -> Identity:
    subject = claims.get("sub")
    if not subject:
        raise ProviderError("Google ID token has no subject")
    return Identity(
        id=subject,
        email=claims.get("email") or "",
        photoUrl=claims.get("picture") or "",
        token=raw_token,
    )


class GoogleIdentityProvider:
    """Google sign-in where the interactive step happens in the UI layer.

    ``begin_interactive_sign_in`` waits until the UI hands back an ID token via
    ``deliver`` or gives up via ``cancel``. The last verified token is kept in
    an encrypted SessionCache so a restarted process can resume the session.
    """

    def __init__(
        self,
        client_id: str,
        cache: SessionCache | None = None,
        verifier: TokenVerifier | None = None,
    ) -> None:
        self._client_id = client_id
        self._cache = cache
        self._verifier = verifier or self._verify_with_google
        self._pending: asyncio.Future[str | None] | None = None
        self._current: Identity | None = None

    @property
    def awaiting_result(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def _verify_with_google(self, raw_token: str) -> Dict[str, Any]:
        return google_id_token.verify_oauth2_token(
            raw_token, google_requests.Request(), self._client_id
        )

    async def _verify(self, raw_token: str) -> Identity:
        try:
            claims = await asyncio.to_thread(self._verifier, raw_token)
        except (ValueError, google_auth_exceptions.GoogleAuthError) as exc:
            raise ProviderError(f"Google ID token rejected: {exc}") from exc
        return _identity_from_claims(claims, raw_token)

    async def begin_interactive_sign_in(self) -> Identity | None:
        if self.awaiting_result:
            raise ProviderError("A sign-in is already waiting for a result")

        result: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._pending = result
        try:
            raw_token = await result
        finally:
            if self._pending is result:
                self._pending = None

        if raw_token is None:
            logger.info("Interactive sign-in dismissed")
            return None

        identity = await self._verify(raw_token)
        self._current = identity
        if self._cache is not None:
            self._cache.save(raw_token)
        logger.info("Google sign-in verified for %s", identity.id)
        return identity

    def deliver(self, id_token: str) -> bool:
        if not self.awaiting_result:
            return False
        self._pending.set_result(id_token)
        return True

    def cancel(self) -> bool:
        if not self.awaiting_result:
            return False
        self._pending.set_result(None)
        return True

    async def revoke_session(self) -> None:
        self._current = None
        if self._cache is not None:
            self._cache.clear()
        logger.info("Google session revoked")

    async def current_session(self) -> Identity | None:
        if self._current is not None:
            return self._current
        if self._cache is None:
            return None

        raw_token = self._cache.load()
        if raw_token is None:
            return None
        try:
            identity = await self._verify(raw_token)
        except ProviderError as exc:
            logger.info("Cached Google session is no longer valid: %s", exc)
            self._cache.clear()
            return None
        self._current = identity
        return identity


class FirebaseCredentialExchange:
    """Exchange a Google identity for a Firebase Auth principal (uid = identity id)."""

    def __init__(self, app: Any = None) -> None:
        self._app = app

    def _exchange_sync(self, identity: Identity) -> AuthenticatedPrincipal:
        try:
            user = firebase_auth.get_user(identity.id, app=self._app)
        except firebase_auth.UserNotFoundError:
            try:
                user = firebase_auth.create_user(
                    uid=identity.id,
                    email=identity.email or None,
                    photo_url=identity.photoUrl or None,
                    app=self._app,
                )
                logger.info("Created Firebase user %s", identity.id)
            except firebase_auth.UidAlreadyExistsError:
                user = firebase_auth.get_user(identity.id, app=self._app)

        custom_token = firebase_auth.create_custom_token(user.uid, app=self._app)
        if isinstance(custom_token, bytes):
            custom_token = custom_token.decode("utf-8")
        return AuthenticatedPrincipal(uid=user.uid, email=user.email, customToken=custom_token)

    async def exchange(self, identity: Identity) -> AuthenticatedPrincipal:
        try:
            return await asyncio.to_thread(self._exchange_sync, identity)
        except (firebase_exceptions.FirebaseError, ValueError) as exc:
            logger.error("Firebase credential exchange failed for %s: %s", identity.id, exc)
            raise ExchangeFailed(f"Firebase credential exchange failed: {exc}") from exc
