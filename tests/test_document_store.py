"""Firestore adapter error mapping, exercised against a stub async client."""

import asyncio
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as google_exceptions

from profile_sync.core.errors import DocumentExists, NotFound, StoreUnavailable
from profile_sync.services.document_store import FirestoreDocumentStore, InMemoryDocumentStore


class StubDocRef:
    def __init__(self, docs, doc_id, error=None):
        self.docs = docs
        self.doc_id = doc_id
        self.error = error

    def _check(self):
        if self.error is not None:
            raise self.error

    async def get(self):
        self._check()
        data = self.docs.get(self.doc_id)
        return SimpleNamespace(exists=data is not None, to_dict=lambda: dict(data or {}))

    async def create(self, data):
        self._check()
        if self.doc_id in self.docs:
            raise google_exceptions.AlreadyExists("exists")
        self.docs[self.doc_id] = dict(data)

    async def set(self, data, merge=False):
        self._check()
        if merge and self.doc_id in self.docs:
            self.docs[self.doc_id].update(data)
        else:
            self.docs[self.doc_id] = dict(data)

    async def update(self, patch):
        self._check()
        if self.doc_id not in self.docs:
            raise google_exceptions.NotFound("missing")
        self.docs[self.doc_id].update(patch)


class StubClient:
    def __init__(self, error=None):
        self.docs = {}
        self.error = error

    def collection(self, name):
        return SimpleNamespace(document=lambda doc_id: StubDocRef(self.docs, doc_id, self.error))


def test_firestore_round_trip_through_adapter():
    store = FirestoreDocumentStore(StubClient())

    async def scenario():
        await store.create("users", "u1", {"displayName": "Username"})
        await store.update("users", "u1", {"displayName": "Alicia"})
        return await store.get("users", "u1"), await store.get("users", "missing")

    present, missing = asyncio.run(scenario())

    assert present.exists and present.data == {"displayName": "Alicia"}
    assert not missing.exists


def test_firestore_create_conflict_maps_to_document_exists():
    store = FirestoreDocumentStore(StubClient())

    async def scenario():
        await store.create("users", "u1", {})
        await store.create("users", "u1", {})

    with pytest.raises(DocumentExists):
        asyncio.run(scenario())


def test_firestore_update_missing_maps_to_not_found():
    store = FirestoreDocumentStore(StubClient())

    with pytest.raises(NotFound):
        asyncio.run(store.update("users", "u1", {"displayName": "x"}))


@pytest.mark.parametrize("op", ["get", "create", "set", "update"])
def test_firestore_outage_maps_to_store_unavailable(op):
    store = FirestoreDocumentStore(StubClient(error=google_exceptions.ServiceUnavailable("down")))
    calls = {
        "get": lambda: store.get("users", "u1"),
        "create": lambda: store.create("users", "u1", {}),
        "set": lambda: store.set("users", "u1", {}),
        "update": lambda: store.update("users", "u1", {}),
    }

    with pytest.raises(StoreUnavailable):
        asyncio.run(calls[op]())


def test_in_memory_set_merge_and_isolation():
    store = InMemoryDocumentStore()
    payload = {"email": "a@x.com"}

    async def scenario():
        await store.set("users", "u1", payload)
        payload["email"] = "mutated"
        await store.set("users", "u1", {"displayName": "Alice"}, merge=True)
        return await store.get("users", "u1")

    snapshot = asyncio.run(scenario())

    assert snapshot.data == {"email": "a@x.com", "displayName": "Alice"}
