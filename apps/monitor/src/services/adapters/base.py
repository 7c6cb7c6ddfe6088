"""Shared fetch/parse/persist cycle for the provider adapters."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Sequence

import httpx

from config import Settings
from ..errors import FetchError, ParseError, PersistenceError, TransportError
from ..health import HealthTracker
from ..store import MonitorStore
from ..units import utc_now

logger = logging.getLogger("envmonitor.hub.adapters")


@dataclass(frozen=True, slots=True)
class Location:
    name: str
    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"{self.name} ({self.latitude}, {self.longitude})"


DEFAULT_CITIES: tuple[Location, ...] = (
    Location("Chicago", 41.8781, -87.6298),
    Location("Los Angeles", 34.0522, -118.2437),
    Location("New York", 40.7128, -74.0060),
    Location("Denver", 39.7392, -104.9903),
    Location("Houston", 29.7604, -95.3698),
    Location("Seattle", 47.6062, -122.3321),
    Location("Miami", 25.7617, -80.1918),
    Location("Atlanta", 33.7490, -84.3880),
)


@dataclass(slots=True)
class FetchOutcome:
    """Result of one target's fetch: either records or the error that aborted it."""

    source: str
    target: Any
    records: List[Any] = field(default_factory=list)
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class BulkResult:
    source: str
    started_at: datetime
    finished_at: datetime
    outcomes: List[FetchOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    def __str__(self) -> str:
        elapsed_ms = (self.finished_at - self.started_at).total_seconds() * 1000.0
        return (
            f"{self.source}: {self.succeeded}/{len(self.outcomes)} targets ok, "
            f"{self.failed} failed ({elapsed_ms:.0f} ms)"
        )


class SourceAdapter(ABC):
    """One external provider: fetch a target, parse it, store it, report health.

    Subclasses implement ``default_targets``, ``_request`` and ``parse``; the
    base class owns the error policy so every provider reports to the health
    tracker the same way.
    """

    token: ClassVar[str]
    source_name: ClassVar[str]
    accept: ClassVar[str] = "application/json"

    def __init__(
        self,
        store: MonitorStore,
        health: HealthTracker,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._store = store
        self._health = health
        self._settings = settings
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "User-Agent": self._settings.user_agent,
                "Accept": self.accept,
            }
            self._client = httpx.AsyncClient(headers=headers, timeout=self._settings.request_timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    def default_targets(self) -> Sequence[Any]:
        """Ordered targets polled by the scheduled bulk job."""

    @abstractmethod
    async def _request(self, target: Any) -> Any:
        """Fetch the raw decoded JSON for ``target``."""

    @abstractmethod
    def parse(self, payload: Any, target: Any) -> List[Any]:
        """Normalize ``payload`` into canonical records or raise ``ParseError``."""

    async def persist(self, record: Any) -> Any:
        await self._store.save_reading(record)
        return record

    async def fetch(self, target: Any = None) -> FetchOutcome:
        try:
            payload = await self._request(target)
            records = self.parse(payload, target)
            stored = [await self.persist(record) for record in records]
        except FetchError as exc:
            logger.error("Error fetching %s data for %s: %s", self.source_name, self._describe(target), exc)
            await self._report(self._health.record_error(self.source_name, str(exc)))
            return FetchOutcome(source=self.source_name, target=target, error=exc)

        await self._report(self._health.record_success(self.source_name))
        logger.info("Fetched %d %s record(s) for %s", len(stored), self.source_name, self._describe(target))
        return FetchOutcome(source=self.source_name, target=target, records=stored)

    async def fetch_defaults(self) -> BulkResult:
        """Bulk job: attempt every default target concurrently and collect per-target outcomes."""
        targets = list(self.default_targets())
        started_at = utc_now()
        started = time.perf_counter()
        logger.info("Starting %s fetch for %d target(s)", self.source_name, len(targets))
        results = await asyncio.gather(*(self.fetch(target) for target in targets), return_exceptions=True)
        outcomes: List[FetchOutcome] = []
        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                # fetch() already converts FetchError; anything else is a bug in a parser
                logger.error("Unexpected failure for %s target %s", self.source_name, self._describe(target), exc_info=result)
                error = ParseError(f"{type(result).__name__}: {result}")
                await self._report(self._health.record_error(self.source_name, str(error)))
                outcomes.append(FetchOutcome(source=self.source_name, target=target, error=error))
            else:
                outcomes.append(result)
        result = BulkResult(source=self.source_name, started_at=started_at, finished_at=utc_now(), outcomes=outcomes)
        logger.info("%s (%.1f ms wall)", result, (time.perf_counter() - started) * 1000.0)
        return result

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        client = await self._get_client()
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(f"HTTP {exc.response.status_code} from {url}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(f"Response from {url} is not valid JSON") from exc

    async def _report(self, update) -> None:
        try:
            await update
        except PersistenceError as exc:
            logger.error("Could not update health for %s: %s", self.source_name, exc)

    @staticmethod
    def _describe(target: Any) -> str:
        return "bulk feed" if target is None else str(target)


__all__ = [
    "BulkResult",
    "DEFAULT_CITIES",
    "FetchOutcome",
    "Location",
    "SourceAdapter",
]
