"""Wholesale persistence of the flashcard store.

The store is saved as a single JSON blob under a key; there is no partial
or incremental write. ``SnapshotWriter`` listens for store change events
and writes the blob on ``flush`` only when something changed.
"""

import asyncio
import json
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import settings, utcnow
from backend.models.snapshot import StoreSnapshot
from backend.srs.store import FlashcardStore, StoreEvent

logger = logging.getLogger(__name__)


async def load_store(db: AsyncSession, key: str | None = None) -> FlashcardStore:
    """Load the store saved under ``key``, or an empty store if none exists."""
    key = key or settings.snapshot_key
    snapshot = await db.get(StoreSnapshot, key)
    if snapshot is None:
        logger.info("No snapshot under %r, starting with an empty store", key)
        return FlashcardStore()
    store = FlashcardStore.from_dict(json.loads(snapshot.payload))
    logger.info("Loaded %d cards from snapshot %r", len(store), key)
    return store


async def save_store(db: AsyncSession, store: FlashcardStore, key: str | None = None) -> None:
    """Write the whole store under ``key``, replacing any previous snapshot."""
    key = key or settings.snapshot_key
    payload = json.dumps(store.to_dict(), ensure_ascii=False)
    snapshot = await db.get(StoreSnapshot, key)
    if snapshot is None:
        db.add(StoreSnapshot(key=key, payload=payload))
    else:
        snapshot.payload = payload
        snapshot.updated_at = utcnow()
    await db.commit()
    logger.debug("Saved snapshot %r (%d cards)", key, len(store))


class SnapshotWriter:
    """Tracks store changes and persists them on demand.

    Flushes are serialized with a lock. ``dirty`` is cleared before the
    store is serialized, so a change made while a write is in flight marks
    the writer dirty again and is picked up by the next flush.
    """

    def __init__(self, store: FlashcardStore, key: str | None = None) -> None:
        self.store = store
        self.key = key or settings.snapshot_key
        self.dirty = False
        self.writes = 0
        self._lock = asyncio.Lock()
        self._unsubscribe = store.subscribe(self._on_change)

    def _on_change(self, event: StoreEvent) -> None:
        logger.debug("Store changed: %s %s", event.kind, ",".join(event.card_ids))
        self.dirty = True

    async def flush(self, db: AsyncSession) -> bool:
        """Save the store if it changed since the last flush. Returns True if written."""
        async with self._lock:
            if not self.dirty:
                return False
            self.dirty = False
            try:
                await save_store(db, self.store, self.key)
            except Exception:
                self.dirty = True
                raise
            self.writes += 1
            return True

    def close(self) -> None:
        self._unsubscribe()
