from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from ..errors import ParseError
from ..readings import MarineReading
from ..units import dig, optional_float, optional_str
from .base import SourceAdapter


def _parse_gmt_time(value: Any) -> Optional[datetime]:
    """CO-OPS timestamps look like ``2024-05-01 12:06`` and are GMT when ``time_zone=gmt``."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m-%d %H:%M")
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


class MarineAdapter(SourceAdapter):
    """Latest water level per NOAA tide station."""

    token = "marine"
    source_name = "marine-data"

    def default_targets(self) -> Sequence[str]:
        return tuple(self._settings.marine_stations)

    async def _request(self, target: Any) -> Any:
        station_id = str(target or "").strip()
        if not station_id:
            raise ParseError("Marine station id is required")
        params = {
            "station": station_id,
            "product": "water_level",
            "date": "latest",
            "datum": "MLLW",
            "units": "english",
            "time_zone": "gmt",
            "format": "json",
        }
        return await self._get_json(self._settings.marine_base_url, params=params)

    def parse(self, payload: Any, target: Any) -> List[MarineReading]:
        station_id = str(target or "").strip()
        data = dig(payload, "data")
        if not isinstance(data, list) or not data:
            upstream = optional_str(payload, "error", "message")
            detail = f": {upstream}" if upstream else ""
            raise ParseError(f"No data found in marine response for station {station_id}{detail}")
        latest = data[0]
        timestamp = _parse_gmt_time(dig(latest, "t"))
        if timestamp is None:
            raise ParseError(f"Missing or malformed timestamp in marine response for station {station_id}")

        latitude = optional_float(payload, "metadata", "lat")
        longitude = optional_float(payload, "metadata", "lon")
        if latitude is None or longitude is None:
            latitude = longitude = None

        reading = MarineReading(
            station_id=station_id,
            timestamp=timestamp,
            latitude=latitude,
            longitude=longitude,
            water_level=optional_float(latest, "v"),
            raw_payload=payload,
        )
        return [reading]


__all__ = ["MarineAdapter"]
