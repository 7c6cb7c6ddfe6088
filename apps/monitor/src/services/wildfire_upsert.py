from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Optional

from .readings import WILDFIRE_MERGE_FIELDS, WildfireEntity
from .store import MonitorStore
from .units import utc_now

logger = logging.getLogger("envmonitor.hub.wildfire")


def merge_fire(existing: WildfireEntity, incoming: WildfireEntity, *, now: Optional[datetime] = None) -> WildfireEntity:
    """Overlay the non-null attributes of ``incoming`` onto ``existing``.

    Null incoming attributes never erase a stored value. ``updated_at`` moves
    forward on every merge, changed or not.
    """
    changes = {
        name: getattr(incoming, name)
        for name in WILDFIRE_MERGE_FIELDS
        if getattr(incoming, name) is not None
    }
    return replace(existing, **changes, updated_at=now or utc_now())


class WildfireUpsertEngine:
    """Insert-or-merge writes keyed by the feed's incident id.

    Merges for one ``fire_id`` are serialized by an in-process lock and the
    read-merge-write itself runs inside one store transaction, so overlapping
    bulk jobs cannot lose each other's fields.
    """

    def __init__(self, store: MonitorStore) -> None:
        self._store = store
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def _acquire_slot(self, fire_id: str) -> asyncio.Lock:
        lock = self._locks.get(fire_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[fire_id] = lock
        self._lock_users[fire_id] = self._lock_users.get(fire_id, 0) + 1
        return lock

    def _release_slot(self, fire_id: str) -> None:
        remaining = self._lock_users.get(fire_id, 1) - 1
        if remaining > 0:
            self._lock_users[fire_id] = remaining
            return
        self._lock_users.pop(fire_id, None)
        self._locks.pop(fire_id, None)

    @property
    def tracked_locks(self) -> int:
        return len(self._locks)

    async def upsert(self, incoming: WildfireEntity) -> WildfireEntity:
        if not incoming.fire_id:
            raise ValueError("Wildfire entity requires a fire_id")

        def _mutate(current: Optional[WildfireEntity]) -> WildfireEntity:
            now = utc_now()
            if current is None:
                return replace(incoming, created_at=now, updated_at=now)
            return merge_fire(current, incoming, now=now)

        lock = self._acquire_slot(incoming.fire_id)
        try:
            async with lock:
                stored = await self._store.apply_fire(incoming.fire_id, _mutate)
        finally:
            self._release_slot(incoming.fire_id)
        logger.debug("Upserted fire %s (status=%s)", stored.fire_id, stored.status)
        return stored


__all__ = ["WildfireUpsertEngine", "merge_fire"]
