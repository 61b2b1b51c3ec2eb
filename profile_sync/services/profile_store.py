from __future__ import annotations

import logging

from profile_sync.core.constants import DEFAULT_DISPLAY_NAME, USERS_COLLECTION
from profile_sync.core.errors import DocumentExists, StoreUnavailable
from profile_sync.models.user import Identity, ProfileRecord
from profile_sync.services.document_store import DocumentStore


logger = logging.getLogger(__name__)


class ProfileStore:
    """Maps an identity id to its ProfileRecord in the users collection."""

    def __init__(self, store: DocumentStore, collection: str = USERS_COLLECTION) -> None:
        self._store = store
        self._collection = collection

    async def fetch_or_create(self, identity: Identity) -> ProfileRecord:
        """Return the stored profile for ``identity``, creating the default one if absent.

        An existing record is returned unchanged even if the identity's email or
        photo moved upstream. Losing a create race to another client is not an
        error: the record that won is read back and returned.
        """
        snapshot = await self._store.get(self._collection, identity.id)
        if snapshot.exists:
            return ProfileRecord.from_document(identity.id, snapshot.data)

        record = ProfileRecord.default_for(identity)
        try:
            await self._store.create(self._collection, identity.id, record.to_document())
        except DocumentExists:
            logger.info("Profile %s was created concurrently; using stored record", identity.id)
            snapshot = await self._store.get(self._collection, identity.id)
            if not snapshot.exists:
                raise StoreUnavailable(
                    f"Profile {identity.id} vanished after a concurrent create"
                )
            return ProfileRecord.from_document(identity.id, snapshot.data)

        logger.info("Registered profile %s", identity.id)
        return record

    async def update_display_name(self, profile_id: str, new_name: str) -> None:
        await self._store.update(self._collection, profile_id, {"displayName": new_name})
        logger.info("Updated display name for %s", profile_id)

    async def fetch_display_name(self, profile_id: str) -> str:
        snapshot = await self._store.get(self._collection, profile_id)
        if not snapshot.exists:
            return DEFAULT_DISPLAY_NAME
        return snapshot.data.get("displayName") or DEFAULT_DISPLAY_NAME
