from __future__ import annotations

import logging
from typing import List, Optional

from .readings import SourceHealth
from .store import MonitorStore
from .units import utc_now

logger = logging.getLogger("envmonitor.hub.health")


def _blank(source_name: str) -> SourceHealth:
    return SourceHealth(source_name=source_name, fetch_count=0, error_count=0, is_active=True)


class HealthTracker:
    """Per-source fetch success/failure history.

    Rows are created lazily on the first report for a source and are never
    deleted; counters only ever go up.
    """

    def __init__(self, store: MonitorStore) -> None:
        self._store = store

    async def record_success(self, source_name: str) -> SourceHealth:
        def _apply(current: Optional[SourceHealth]) -> SourceHealth:
            status = current or _blank(source_name)
            status.last_success_at = utc_now()
            status.fetch_count += 1
            return status

        status = await self._store.apply_health(source_name, _apply)
        logger.debug("Recorded successful fetch for source: %s", source_name)
        return status

    async def record_error(self, source_name: str, message: str) -> SourceHealth:
        def _apply(current: Optional[SourceHealth]) -> SourceHealth:
            status = current or _blank(source_name)
            status.last_error_at = utc_now()
            status.last_error_message = message
            status.error_count += 1
            return status

        status = await self._store.apply_health(source_name, _apply)
        logger.warning("Recorded error for source %s: %s", source_name, message)
        return status

    async def set_active(self, source_name: str, active: bool) -> SourceHealth:
        def _apply(current: Optional[SourceHealth]) -> SourceHealth:
            status = current or _blank(source_name)
            status.is_active = active
            return status

        status = await self._store.apply_health(source_name, _apply)
        logger.info("Set data source %s active status to: %s", source_name, active)
        return status

    async def is_active(self, source_name: str) -> bool:
        status = await self._store.get_health(source_name)
        return True if status is None else status.is_active

    async def get(self, source_name: str) -> Optional[SourceHealth]:
        return await self._store.get_health(source_name)

    async def list(self) -> List[SourceHealth]:
        return await self._store.list_health()


__all__ = ["HealthTracker"]
