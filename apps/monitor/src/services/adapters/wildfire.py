from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from config import Settings
from ..errors import ParseError
from ..health import HealthTracker
from ..readings import WildfireEntity
from ..store import MonitorStore
from ..units import dig, epoch_ms_to_date, optional_float, optional_str
from ..wildfire_upsert import WildfireUpsertEngine
from .base import SourceAdapter

logger = logging.getLogger("envmonitor.hub.adapters.wildfire")

QUERY_PARAMS = {
    "where": "1=1",
    "outFields": "*",
    "f": "json",
    "returnGeometry": "true",
    "spatialRel": "esriSpatialRelIntersects",
    "outSR": "4326",
}


def parse_fire_feature(feature: Any) -> Optional[WildfireEntity]:
    """Turn one ArcGIS feature into a fire entity; None when it has no incident id."""
    attributes = dig(feature, "attributes")
    if not isinstance(attributes, dict):
        return None
    fire_id = optional_str(attributes, "INCIDENT_ID")
    if fire_id is None:
        return None

    # First vertex of the outer ring stands in for the centroid.
    longitude = optional_float(feature, "geometry", "rings", 0, 0, 0)
    latitude = optional_float(feature, "geometry", "rings", 0, 0, 1)
    if latitude is None or longitude is None:
        latitude = longitude = None

    return WildfireEntity(
        fire_id=fire_id,
        name=optional_str(attributes, "INCIDENT_NAME"),
        latitude=latitude,
        longitude=longitude,
        discovery_date=epoch_ms_to_date(attributes.get("DISCOVERY_DATE")),
        containment_date=epoch_ms_to_date(attributes.get("CONTAINMENT_DATE")),
        size_acres=optional_float(attributes, "FIRE_SIZE"),
        cause=optional_str(attributes, "FIRE_CAUSE"),
        status=optional_str(attributes, "FIRE_STATUS"),
        incident_type=optional_str(attributes, "INCIDENT_TYPE"),
        raw_payload=feature,
    )


class WildfireAdapter(SourceAdapter):
    """Bulk perimeter feed; every feature is merged through the upsert engine."""

    token = "fire"
    source_name = "fire-data"

    def __init__(
        self,
        store: MonitorStore,
        health: HealthTracker,
        settings: Settings,
        *,
        upsert_engine: Optional[WildfireUpsertEngine] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(store, health, settings, **kwargs)
        self._upsert = upsert_engine or WildfireUpsertEngine(store)

    def default_targets(self) -> Sequence[None]:
        return (None,)

    async def _request(self, target: Any) -> Any:
        return await self._get_json(self._settings.fire_feed_url, params=dict(QUERY_PARAMS))

    def parse(self, payload: Any, target: Any) -> List[WildfireEntity]:
        features = dig(payload, "features")
        if not isinstance(features, list):
            upstream = optional_str(payload, "error", "message")
            detail = f": {upstream}" if upstream else ""
            raise ParseError(f"No features found in fire data response{detail}")
        fires: List[WildfireEntity] = []
        skipped = 0
        for feature in features:
            fire = parse_fire_feature(feature)
            if fire is None:
                skipped += 1
                continue
            fires.append(fire)
        if skipped:
            logger.warning("Skipped %d fire feature(s) without an incident id", skipped)
        return fires

    async def persist(self, record: WildfireEntity) -> WildfireEntity:
        return await self._upsert.upsert(record)


__all__ = ["WildfireAdapter", "parse_fire_feature", "QUERY_PARAMS"]
