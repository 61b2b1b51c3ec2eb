from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Protocol

from google.api_core import exceptions as google_exceptions

from profile_sync.core.errors import DocumentExists, NotFound, StoreUnavailable


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    exists: bool
    data: Dict[str, Any] = field(default_factory=dict)


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot: ...

    async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None: ...

    async def set(
        self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False
    ) -> None: ...

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None: ...


class FirestoreDocumentStore:
    """DocumentStore over the firebase-admin async Firestore client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def _doc_ref(self, collection: str, doc_id: str) -> Any:
        return self._client.collection(collection).document(doc_id)

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        try:
            snapshot = await self._doc_ref(collection, doc_id).get()
        except google_exceptions.GoogleAPIError as exc:
            logger.error("Firestore read failed (%s/%s): %s", collection, doc_id, exc)
            raise StoreUnavailable(f"Failed to read {collection}/{doc_id}: {exc}") from exc
        if not snapshot.exists:
            return DocumentSnapshot(id=doc_id, exists=False)
        return DocumentSnapshot(id=doc_id, exists=True, data=snapshot.to_dict() or {})

    async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        try:
            await self._doc_ref(collection, doc_id).create(data)
        except google_exceptions.AlreadyExists as exc:
            raise DocumentExists(f"{collection}/{doc_id}") from exc
        except google_exceptions.GoogleAPIError as exc:
            logger.error("Firestore create failed (%s/%s): %s", collection, doc_id, exc)
            raise StoreUnavailable(f"Failed to create {collection}/{doc_id}: {exc}") from exc

    async def set(
        self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False
    ) -> None:
        try:
            await self._doc_ref(collection, doc_id).set(data, merge=merge)
        except google_exceptions.GoogleAPIError as exc:
            logger.error("Firestore write failed (%s/%s): %s", collection, doc_id, exc)
            raise StoreUnavailable(f"Failed to write {collection}/{doc_id}: {exc}") from exc

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        try:
            await self._doc_ref(collection, doc_id).update(patch)
        except google_exceptions.NotFound as exc:
            raise NotFound(f"{collection}/{doc_id} does not exist") from exc
        except google_exceptions.GoogleAPIError as exc:
            logger.error("Firestore update failed (%s/%s): %s", collection, doc_id, exc)
            raise StoreUnavailable(f"Failed to update {collection}/{doc_id}: {exc}") from exc


class InMemoryDocumentStore:
    """Process-local DocumentStore. Each operation is atomic per store."""

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def _docs(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        async with self._lock:
            payload = self._docs(collection).get(doc_id)
            if payload is None:
                return DocumentSnapshot(id=doc_id, exists=False)
            return DocumentSnapshot(id=doc_id, exists=True, data=copy.deepcopy(payload))

    async def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        async with self._lock:
            docs = self._docs(collection)
            if doc_id in docs:
                raise DocumentExists(f"{collection}/{doc_id}")
            docs[doc_id] = copy.deepcopy(data)

    async def set(
        self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False
    ) -> None:
        async with self._lock:
            docs = self._docs(collection)
            if merge and doc_id in docs:
                docs[doc_id].update(copy.deepcopy(data))
            else:
                docs[doc_id] = copy.deepcopy(data)

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        async with self._lock:
            docs = self._docs(collection)
            if doc_id not in docs:
                raise NotFound(f"{collection}/{doc_id} does not exist")
            docs[doc_id].update(copy.deepcopy(patch))
