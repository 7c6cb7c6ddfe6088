from __future__ import annotations

from typing import Any, List, Sequence

from ..errors import ParseError
from ..readings import StationWeatherReading
from ..units import (
    celsius_to_fahrenheit,
    convert,
    dig,
    meters_per_second_to_mph,
    meters_to_miles,
    optional_float,
    optional_int,
    optional_str,
    parse_iso_timestamp,
    pascals_to_inhg,
    require_timestamp,
)
from .base import SourceAdapter


class StationWeatherAdapter(SourceAdapter):
    """Latest observation per weather.gov station (SI units converted to US customary)."""

    token = "weather"
    source_name = "weather.gov"
    accept = "application/geo+json"

    def default_targets(self) -> Sequence[str]:
        return tuple(self._settings.weather_stations)

    async def _request(self, target: Any) -> Any:
        station_id = str(target or "").strip().upper()
        if not station_id:
            raise ParseError("Station id is required")
        base = self._settings.weather_gov_base_url.rstrip("/")
        return await self._get_json(f"{base}/stations/{station_id}/observations/latest")

    def parse(self, payload: Any, target: Any) -> List[StationWeatherReading]:
        station_id = str(target or "").strip().upper()
        props = dig(payload, "properties")
        if not isinstance(props, dict):
            raise ParseError(f"No properties found in weather response for station {station_id}")
        timestamp = require_timestamp(parse_iso_timestamp(props.get("timestamp")), f"weather response for {station_id}")

        reading = StationWeatherReading(
            station_id=station_id,
            timestamp=timestamp,
            temperature_f=convert(optional_float(props, "temperature", "value"), celsius_to_fahrenheit),
            humidity_pct=optional_float(props, "relativeHumidity", "value"),
            pressure_inhg=convert(optional_float(props, "barometricPressure", "value"), pascals_to_inhg),
            wind_speed_mph=convert(optional_float(props, "windSpeed", "value"), meters_per_second_to_mph),
            wind_direction_deg=optional_int(props, "windDirection", "value"),
            visibility_miles=convert(optional_float(props, "visibility", "value"), meters_to_miles),
            conditions_text=optional_str(props, "textDescription"),
            raw_payload=payload,
        )
        return [reading]


__all__ = ["StationWeatherAdapter"]
