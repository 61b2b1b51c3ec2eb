from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest

from profile_sync.models.session import Notice
from profile_sync.models.user import AuthenticatedPrincipal, Identity
from profile_sync.services.document_store import InMemoryDocumentStore
from profile_sync.services.profile_store import ProfileStore
from profile_sync.services.session_controller import SessionController


ALICE = Identity(id="u1", email="a@x.com", photoUrl="http://p", token="google-token-u1")
BOB = Identity(id="u2", email="b@x.com", photoUrl="http://q", token="google-token-u2")


class FakeIdentityProvider:
    """Scripted provider. ``outcome`` is an Identity, None (cancel) or an exception."""

    def __init__(self, outcome: Any = ALICE, session: Any = None) -> None:
        self.outcome = outcome
        self.session = session
        self.gate: asyncio.Event | None = None
        self.revoked = 0

    async def begin_interactive_sign_in(self) -> Identity | None:
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome

    async def revoke_session(self) -> None:
        self.revoked += 1
        self.session = None

    async def current_session(self) -> Identity | None:
        if isinstance(self.session, BaseException):
            raise self.session
        return self.session


class FakeExchange:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: List[str] = []

    async def exchange(self, identity: Identity) -> AuthenticatedPrincipal:
        self.calls.append(identity.id)
        if self.error is not None:
            raise self.error
        return AuthenticatedPrincipal(uid=identity.id, email=identity.email, customToken="custom")


class RecordingStore(InMemoryDocumentStore):
    """In-memory store that counts writes and can fail or pause on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.creates = 0
        self.updates = 0
        self.failures: Dict[str, Exception] = {}
        self.update_gate: asyncio.Event | None = None
        self.read_gate: asyncio.Event | None = None

    def _maybe_fail(self, op: str) -> None:
        if op in self.failures:
            raise self.failures[op]

    async def get(self, collection, doc_id):
        self._maybe_fail("get")
        snapshot = await super().get(collection, doc_id)
        if self.read_gate is not None:
            await self.read_gate.wait()
        return snapshot

    async def create(self, collection, doc_id, data):
        self._maybe_fail("create")
        self.creates += 1
        await super().create(collection, doc_id, data)

    async def update(self, collection, doc_id, patch):
        if self.update_gate is not None:
            await self.update_gate.wait()
        self._maybe_fail("update")
        self.updates += 1
        await super().update(collection, doc_id, patch)


class Harness:
    def __init__(self, provider: FakeIdentityProvider | None = None) -> None:
        self.provider = provider or FakeIdentityProvider()
        self.exchange = FakeExchange()
        self.store = RecordingStore()
        self.profiles = ProfileStore(self.store)
        self.controller = SessionController(self.provider, self.exchange, self.profiles)
        self.states: List[Any] = []
        self.notices: List[Notice] = []
        self.controller.subscribe(self.states.append)
        self.controller.subscribe_notices(self.notices.append)

    @property
    def errors(self) -> List[Notice]:
        return [notice for notice in self.notices if notice.level == "error"]

    async def seed(self, doc_id: str, data: Dict[str, Any]) -> None:
        await InMemoryDocumentStore.set(self.store, "users", doc_id, data)

    async def sign_in(self) -> None:
        task = self.controller.begin_sign_in()
        assert task is not None
        await task


@pytest.fixture
def harness() -> Harness:
    return Harness()
