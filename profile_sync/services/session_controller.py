from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, List, Tuple

from profile_sync.core.errors import (
    ExchangeFailed,
    NotFound,
    ProviderCancelled,
    ProviderError,
    SessionError,
    StoreUnavailable,
)
from profile_sync.models.session import Notice, SessionState, SignedIn, SignedOut, SigningIn
from profile_sync.models.user import AuthenticatedPrincipal, Identity, ProfileRecord, validate_display_name
from profile_sync.services.identity import CredentialExchange, IdentityProvider
from profile_sync.services.profile_store import ProfileStore


logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]
NoticeListener = Callable[[Notice], None]

_SIGN_IN_MESSAGES = {
    ProviderError: "Google sign in failed",
    ExchangeFailed: "Authentication failed",
    StoreUnavailable: "Failed to load profile",
    NotFound: "Failed to load profile",
}


def _sign_in_message(exc: SessionError) -> str:
    prefix = _SIGN_IN_MESSAGES.get(type(exc), "Sign in failed")
    return f"{prefix}: {exc}"


class SessionController:
    """Drives the session state machine and is the only writer of SessionState.

    Every asynchronous operation records the generation it was issued under.
    Signing in or out advances the generation, and a completion whose
    generation is no longer current is logged and dropped instead of being
    applied.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        exchange: CredentialExchange,
        profiles: ProfileStore,
    ) -> None:
        self._provider = provider
        self._exchange = exchange
        self._profiles = profiles
        self._state: SessionState = SignedOut()
        self._generation = 0
        self._principal: AuthenticatedPrincipal | None = None
        self._state_listeners: List[StateListener] = []
        self._notice_listeners: List[NoticeListener] = []
        self._tasks: set[asyncio.Task] = set()
        self._sign_in_task: asyncio.Task | None = None
        self._name_writes = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def principal(self) -> AuthenticatedPrincipal | None:
        return self._principal

    @property
    def sign_in_task(self) -> asyncio.Task | None:
        return self._sign_in_task

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._state_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return unsubscribe

    def subscribe_notices(self, listener: NoticeListener) -> Callable[[], None]:
        self._notice_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._notice_listeners:
                self._notice_listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: SessionState) -> None:
        self._state = state
        logger.debug("Session state -> %s (generation %d)", state.status, self._generation)
        for listener in list(self._state_listeners):
            listener(state)

    def _notify(self, level: str, message: str, exc: BaseException | None = None) -> None:
        notice = Notice(
            level=level,
            message=message,
            error=type(exc).__name__ if exc is not None else None,
        )
        if level == "error":
            logger.warning(message)
        else:
            logger.info(message)
        for listener in list(self._notice_listeners):
            listener(notice)

    # ------------------------------------------------------------------
    # Generations and tasks
    # ------------------------------------------------------------------

    def _advance(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _spawn(
        self, loop: asyncio.AbstractEventLoop, coro: Coroutine[Any, Any, None]
    ) -> asyncio.Task:
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _authenticate(
        self, identity: Identity
    ) -> Tuple[AuthenticatedPrincipal, ProfileRecord]:
        principal = await self._exchange.exchange(identity)
        profile = await self._profiles.fetch_or_create(identity)
        return principal, profile

    # ------------------------------------------------------------------
    # Startup reconciliation
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Resume an existing provider session without the interactive step."""
        generation = self._advance()
        try:
            identity = await self._provider.current_session()
            if identity is None:
                logger.info("No provider session to resume")
                return
            principal, profile = await self._authenticate(identity)
        except SessionError as exc:
            if self._is_current(generation):
                self._notify("error", f"Failed to restore session: {exc}", exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error while restoring session")
            if self._is_current(generation):
                self._notify("error", "Failed to restore session", exc)
            return

        if not self._is_current(generation) or not isinstance(self._state, SignedOut):
            logger.info("Discarding stale session restore (generation %d)", generation)
            return
        self._principal = principal
        self._publish(SignedIn(identity=identity, profile=profile))
        logger.info("Resumed session for %s", identity.id)

    # ------------------------------------------------------------------
    # Sign in / sign out
    # ------------------------------------------------------------------

    def begin_sign_in(self) -> asyncio.Task | None:
        if not isinstance(self._state, SignedOut):
            logger.info("Ignoring sign-in request while %s", self._state.status)
            return None
        loop = asyncio.get_running_loop()
        generation = self._advance()
        self._sign_in_task = self._spawn(loop, self._sign_in(generation))
        self._publish(SigningIn())
        return self._sign_in_task

    async def _sign_in(self, generation: int) -> None:
        try:
            identity = await self._provider.begin_interactive_sign_in()
            if identity is None:
                raise ProviderCancelled("Sign-in dismissed")
            principal, profile = await self._authenticate(identity)
        except ProviderCancelled:
            if self._is_current(generation):
                self._publish(SignedOut())
            return
        except SessionError as exc:
            if self._is_current(generation):
                self._publish(SignedOut())
                self._notify("error", _sign_in_message(exc), exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error during sign-in")
            if self._is_current(generation):
                self._publish(SignedOut())
                self._notify("error", "Sign in failed", exc)
            return

        if not self._is_current(generation):
            logger.info("Discarding stale sign-in result (generation %d)", generation)
            return
        self._principal = principal
        self._publish(SignedIn(identity=identity, profile=profile))
        self._notify("info", "Successfully logged in!")

    async def sign_out(self) -> bool:
        if isinstance(self._state, SignedOut):
            return False
        self._advance()
        if self._sign_in_task is not None and not self._sign_in_task.done():
            self._sign_in_task.cancel()
        self._sign_in_task = None
        self._principal = None
        self._publish(SignedOut())

        try:
            await self._provider.revoke_session()
        except SessionError as exc:
            self._notify("error", f"Sign out failed: {exc}", exc)
        except Exception as exc:
            logger.exception("Unexpected error while revoking provider session")
            self._notify("error", "Sign out failed", exc)
        return True

    # ------------------------------------------------------------------
    # Display name editing
    # ------------------------------------------------------------------

    def begin_edit(self) -> bool:
        state = self._state
        if not isinstance(state, SignedIn) or state.editing or state.saving:
            return False
        self._publish(
            state.evolve(editing=True, pendingDisplayName=state.profile.displayName)
        )
        return True

    def update_pending(self, text: str) -> bool:
        state = self._state
        if not isinstance(state, SignedIn) or not state.editing:
            return False
        self._publish(state.evolve(pendingDisplayName=text))
        return True

    def cancel_edit(self) -> bool:
        state = self._state
        if not isinstance(state, SignedIn) or not state.editing:
            return False
        self._publish(state.evolve(editing=False, pendingDisplayName=None))
        return True

    def commit_edit(self, new_name: str) -> asyncio.Task | None:
        """Apply ``new_name`` locally and write it to the store in the background.

        A failed write is reported but not rolled back. Raises ValueError for a
        blank or over-long name without touching state.
        """
        state = self._state
        if not isinstance(state, SignedIn) or not state.editing:
            return None
        name = validate_display_name(new_name)
        loop = asyncio.get_running_loop()

        generation = self._generation
        self._name_writes += 1
        profile = state.profile.model_copy(update={"displayName": name})
        self._publish(
            state.evolve(profile=profile, editing=False, pendingDisplayName=None, saving=True)
        )
        return self._spawn(loop, self._save_display_name(generation, profile.id, name))

    async def _save_display_name(self, generation: int, profile_id: str, name: str) -> None:
        try:
            await self._profiles.update_display_name(profile_id, name)
        except SessionError as exc:
            self._finish_save(generation, "error", f"Failed to update name: {exc}", exc)
        except Exception as exc:
            logger.exception("Unexpected error while saving display name")
            self._finish_save(generation, "error", "Failed to update name", exc)
        else:
            self._finish_save(generation, "info", "Name updated")

    def _finish_save(
        self, generation: int, level: str, message: str, exc: BaseException | None = None
    ) -> None:
        if not self._is_current(generation):
            logger.info("Discarding stale display name result (generation %d)", generation)
            return
        state = self._state
        if isinstance(state, SignedIn) and state.saving:
            self._publish(state.evolve(saving=False))
        self._notify(level, message, exc)

    def refresh_profile(self) -> asyncio.Task | None:
        state = self._state
        if not isinstance(state, SignedIn) or state.editing or state.saving:
            return None
        loop = asyncio.get_running_loop()
        return self._spawn(
            loop,
            self._refresh_display_name(self._generation, self._name_writes, state.profile.id),
        )

    async def _refresh_display_name(
        self, generation: int, name_writes: int, profile_id: str
    ) -> None:
        try:
            name = await self._profiles.fetch_display_name(profile_id)
        except SessionError as exc:
            if self._is_current(generation):
                self._notify("error", f"Failed to fetch display name: {exc}", exc)
            return

        state = self._state
        if not self._is_current(generation) or not isinstance(state, SignedIn):
            return
        if name_writes != self._name_writes:
            logger.info("Discarding display name read issued before a newer commit")
            return
        if state.editing or state.saving or state.profile.displayName == name:
            return
        self._publish(
            state.evolve(profile=state.profile.model_copy(update={"displayName": name}))
        )

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Cancel a pending sign-in and wait for outstanding writes."""
        if self._sign_in_task is not None and not self._sign_in_task.done():
            self._sign_in_task.cancel()
        pending = [task for task in self._tasks if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
