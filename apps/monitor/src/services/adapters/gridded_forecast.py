from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence

from ..errors import ParseError
from ..readings import GriddedForecastReading
from ..units import (
    celsius_to_fahrenheit,
    convert,
    dig,
    meters_per_second_to_mph,
    optional_float,
    optional_int,
)
from .base import DEFAULT_CITIES, Location, SourceAdapter

CURRENT_VARIABLES = (
    "temperature_2m",
    "relative_humidity_2m",
    "precipitation",
    "wind_speed_10m",
    "wind_direction_10m",
    "uv_index",
)


def _parse_local_time(value: Any, offset_seconds: Optional[float]) -> Optional[datetime]:
    """Open-Meteo reports ``current.time`` as local ``YYYY-MM-DDTHH:MM`` plus a separate UTC offset."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        return parsed.astimezone(timezone.utc)
    offset = timezone(timedelta(seconds=int(offset_seconds or 0)))
    return parsed.replace(tzinfo=offset).astimezone(timezone.utc)


class GriddedForecastAdapter(SourceAdapter):
    token = "meteo"
    source_name = "open-meteo"

    def default_targets(self) -> Sequence[Location]:
        return DEFAULT_CITIES

    async def _request(self, target: Any) -> Any:
        location = self._location(target)
        params = {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "current": ",".join(CURRENT_VARIABLES),
            "wind_speed_unit": "ms",
            "timezone": "auto",
            "forecast_days": 1,
        }
        base = self._settings.open_meteo_base_url.rstrip("/")
        return await self._get_json(f"{base}/forecast", params=params)

    def parse(self, payload: Any, target: Any) -> List[GriddedForecastReading]:
        location = self._location(target)
        current = dig(payload, "current")
        if not isinstance(current, dict):
            raise ParseError(f"No current data found in meteo response for {location}")
        timestamp = _parse_local_time(current.get("time"), optional_float(payload, "utc_offset_seconds"))
        if timestamp is None:
            raise ParseError(f"Missing or malformed timestamp in meteo response for {location}")

        reading = GriddedForecastReading(
            latitude=location.latitude,
            longitude=location.longitude,
            timestamp=timestamp,
            temperature_f=convert(optional_float(current, "temperature_2m"), celsius_to_fahrenheit),
            humidity_pct=optional_float(current, "relative_humidity_2m"),
            precipitation=optional_float(current, "precipitation"),
            wind_speed_mph=convert(optional_float(current, "wind_speed_10m"), meters_per_second_to_mph),
            wind_direction_deg=optional_int(current, "wind_direction_10m"),
            uv_index=optional_float(current, "uv_index"),
            raw_payload=payload,
        )
        return [reading]

    @staticmethod
    def _location(target: Any) -> Location:
        if isinstance(target, Location):
            return target
        if isinstance(target, (tuple, list)) and len(target) == 2:
            lat, lon = target
            return Location(f"{lat},{lon}", float(lat), float(lon))
        raise ParseError(f"Unsupported meteo target: {target!r}")


__all__ = ["GriddedForecastAdapter", "CURRENT_VARIABLES"]
