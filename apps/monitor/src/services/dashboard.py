from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from typing import Any, Awaitable, Dict, Tuple

from .errors import AggregationError
from .health import HealthTracker
from .readings import (
    AirQualityReading,
    DashboardSnapshot,
    GriddedForecastReading,
    MarineReading,
    StationWeatherReading,
)
from .store import MonitorStore
from .units import utc_now
from .webcams import WebcamCatalog

logger = logging.getLogger("envmonitor.hub.dashboard")

DEFAULT_WINDOW_HOURS = 24


def validate_hours(hours: Any) -> int:
    if isinstance(hours, bool) or not isinstance(hours, int) or hours <= 0:
        raise ValueError(f"hours must be a positive integer, got {hours!r}")
    return hours


class DashboardAggregator:
    """Joins the recent window of every source into one snapshot.

    The seven reads run concurrently and the snapshot is all-or-nothing: the
    first failing branch aborts the call with ``AggregationError``. Snapshots
    are cached per window size for ``cache_ttl`` seconds and are not
    invalidated by new ingestion.
    """

    def __init__(
        self,
        store: MonitorStore,
        health: HealthTracker,
        webcams: WebcamCatalog,
        *,
        cache_ttl: float = 60.0,
        branch_timeout: float = 30.0,
    ) -> None:
        self._store = store
        self._health = health
        self._webcams = webcams
        self._cache_ttl = cache_ttl
        self._branch_timeout = branch_timeout
        self._cache: Dict[int, Tuple[float, DashboardSnapshot]] = {}
        self._lock = asyncio.Lock()

    async def snapshot(self, hours: int = DEFAULT_WINDOW_HOURS) -> DashboardSnapshot:
        hours = validate_hours(hours)
        now = time.monotonic()
        cached = self._cache.get(hours)
        if cached and cached[0] > now:
            return cached[1]
        async with self._lock:
            cached = self._cache.get(hours)
            if cached and cached[0] > now:
                return cached[1]
            snapshot = await self._build(hours)
            if self._cache_ttl > 0:
                self._cache[hours] = (time.monotonic() + self._cache_ttl, snapshot)
            return snapshot

    def clear(self) -> None:
        self._cache.clear()

    async def _build(self, hours: int) -> DashboardSnapshot:
        generated_at = utc_now()
        since = generated_at - timedelta(hours=hours)
        branches = {
            "weather": self._store.recent_readings(StationWeatherReading, since),
            "meteo": self._store.recent_readings(GriddedForecastReading, since),
            "marine": self._store.recent_readings(MarineReading, since),
            "air_quality": self._store.recent_readings(AirQualityReading, since),
            "fires": self._store.fires_updated_since(since),
            "webcams": self._webcams.active(),
            "sources": self._health.list(),
        }
        started = time.perf_counter()
        results = await asyncio.gather(
            *(self._guard(coro) for coro in branches.values()),
            return_exceptions=True,
        )
        failures = [
            (name, result)
            for name, result in zip(branches, results)
            if isinstance(result, BaseException)
        ]
        for _, result in failures:
            if isinstance(result, asyncio.CancelledError):
                raise result
        if failures:
            name, error = failures[0]
            logger.error("Dashboard %s branch failed: %s", name, error, exc_info=error)
            raise AggregationError(f"Failed to load dashboard {name} data") from error

        data = dict(zip(branches, results))
        logger.debug("Built %dh dashboard snapshot in %.1f ms", hours, (time.perf_counter() - started) * 1000.0)
        return DashboardSnapshot(
            hours=hours,
            generated_at=generated_at,
            recent_weather=data["weather"],
            recent_meteo=data["meteo"],
            recent_marine=data["marine"],
            recent_air_quality=data["air_quality"],
            recent_fires=data["fires"],
            active_webcams=data["webcams"],
            source_statuses=data["sources"],
        )

    async def _guard(self, coro: Awaitable[Any]) -> Any:
        if self._branch_timeout and self._branch_timeout > 0:
            return await asyncio.wait_for(coro, timeout=self._branch_timeout)
        return await coro


__all__ = ["DEFAULT_WINDOW_HOURS", "DashboardAggregator", "validate_hours"]
