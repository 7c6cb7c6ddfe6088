from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import httpx

from config import Settings
from .adapters import (
    AirQualityAdapter,
    GriddedForecastAdapter,
    MarineAdapter,
    SourceAdapter,
    StationWeatherAdapter,
    WildfireAdapter,
)
from .dashboard import DashboardAggregator
from .health import HealthTracker
from .refresh import RefreshTrigger
from .scheduler import IngestScheduler
from .store import MonitorStore
from .webcams import WebcamCatalog
from .wildfire_upsert import WildfireUpsertEngine

logger = logging.getLogger("envmonitor.hub.container")


@dataclass(slots=True)
class MonitorServices:
    settings: Settings
    store: MonitorStore
    health: HealthTracker
    upsert: WildfireUpsertEngine
    adapters: Dict[str, SourceAdapter]
    webcams: WebcamCatalog
    scheduler: IngestScheduler
    refresh: RefreshTrigger
    dashboard: DashboardAggregator

    async def close(self) -> None:
        await self.scheduler.stop()
        for adapter in self.adapters.values():
            await adapter.close()


def polling_intervals(settings: Settings) -> Dict[str, float]:
    return {
        "weather": settings.weather_interval_seconds,
        "meteo": settings.meteo_interval_seconds,
        "marine": settings.marine_interval_seconds,
        "airquality": settings.airquality_interval_seconds,
        "fire": settings.fire_interval_seconds,
    }


def build_services(settings: Settings, *, client: Optional[httpx.AsyncClient] = None) -> MonitorServices:
    """Wire the store, adapters, scheduler and readers for one application instance.

    ``client`` is shared by every adapter when given (tests pass one bound to a
    mock transport); otherwise each adapter opens its own lazily.
    """
    store = MonitorStore(db_path=Path(settings.database_path))
    health = HealthTracker(store)
    upsert = WildfireUpsertEngine(store)

    adapters: Dict[str, SourceAdapter] = {}
    for adapter in (
        StationWeatherAdapter(store, health, settings, client=client),
        GriddedForecastAdapter(store, health, settings, client=client),
        MarineAdapter(store, health, settings, client=client),
        AirQualityAdapter(store, health, settings, client=client),
        WildfireAdapter(store, health, settings, client=client, upsert_engine=upsert),
    ):
        adapters[adapter.token] = adapter

    webcams = WebcamCatalog.from_file(settings.webcam_catalog_path)
    scheduler = IngestScheduler(
        adapters,
        polling_intervals(settings),
        health,
        allow_overlap=settings.scheduler_allow_overlap,
    )
    dashboard = DashboardAggregator(
        store,
        health,
        webcams,
        cache_ttl=settings.dashboard_cache_ttl,
        branch_timeout=settings.dashboard_branch_timeout,
    )
    logger.info("Services wired with database %s", store.db_path)
    return MonitorServices(
        settings=settings,
        store=store,
        health=health,
        upsert=upsert,
        adapters=adapters,
        webcams=webcams,
        scheduler=scheduler,
        refresh=RefreshTrigger(scheduler),
        dashboard=dashboard,
    )


__all__ = ["MonitorServices", "build_services", "polling_intervals"]
