from __future__ import annotations

import asyncio
import logging
from typing import List

from .errors import UnknownSourceError
from .scheduler import IngestScheduler, JobRecord

logger = logging.getLogger("envmonitor.hub.refresh")


class RefreshTrigger:
    """Operator-initiated bulk fetch for one source, addressed by its short token."""

    def __init__(self, scheduler: IngestScheduler) -> None:
        self._scheduler = scheduler

    @property
    def tokens(self) -> List[str]:
        return sorted(self._scheduler.adapters)

    def resolve(self, token: str) -> str:
        """Case-insensitive exact match against the known tokens."""
        normalized = (token or "").strip().lower()
        if normalized not in self._scheduler.adapters:
            raise UnknownSourceError(token)
        return normalized

    def trigger(self, token: str) -> asyncio.Task[JobRecord]:
        """Start the bulk job for ``token`` and return without waiting for it."""
        normalized = self.resolve(token)
        logger.info("Manual refresh requested for %s", normalized)
        return self._scheduler.run_now(normalized, trigger="manual")


__all__ = ["RefreshTrigger"]
