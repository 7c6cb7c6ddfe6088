from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..errors import ParseError
from ..readings import AirQualityReading
from ..units import optional_float, optional_int, optional_str, utc_now
from .base import DEFAULT_CITIES, Location, SourceAdapter

logger = logging.getLogger("envmonitor.hub.adapters.air_quality")

POLLUTANT_ALIASES: Dict[str, str] = {
    "PM2.5": "pm25",
    "PM10": "pm10",
    "NO2": "no2",
    "O3": "o3",
    "OZONE": "o3",
    "SO2": "so2",
    "CO": "co",
}

# AirNow reports local hours with a US zone abbreviation.
ZONE_OFFSETS_HOURS: Dict[str, int] = {
    "UTC": 0,
    "GMT": 0,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
    "AKST": -9,
    "AKDT": -8,
    "HST": -10,
}


def _observed_at(entry: Any) -> Optional[datetime]:
    day = optional_str(entry, "DateObserved")
    hour = optional_int(entry, "HourObserved")
    if day is None or hour is None:
        return None
    try:
        local = datetime.strptime(day, "%Y-%m-%d") + timedelta(hours=hour)
    except ValueError:
        return None
    zone = (optional_str(entry, "LocalTimeZone") or "UTC").upper()
    offset = ZONE_OFFSETS_HOURS.get(zone)
    if offset is None:
        return None
    return local.replace(tzinfo=timezone(timedelta(hours=offset))).astimezone(timezone.utc)


class AirQualityAdapter(SourceAdapter):
    """Current AQI near each labelled location.

    The first observation supplies the AQI; every observation contributes the
    pollutant it names, so a response covering O3 and PM2.5 fills both.
    """

    token = "airquality"
    source_name = "air-quality"

    def default_targets(self) -> Sequence[Location]:
        return DEFAULT_CITIES

    async def _request(self, target: Any) -> Any:
        location = self._location(target)
        params = {
            "format": "application/json",
            "latitude": location.latitude,
            "longitude": location.longitude,
            "distance": self._settings.air_quality_distance_miles,
            "API_KEY": self._settings.air_quality_api_key,
        }
        base = self._settings.air_quality_base_url.rstrip("/")
        return await self._get_json(f"{base}/observation/latLong/current/", params=params)

    def parse(self, payload: Any, target: Any) -> List[AirQualityReading]:
        location = self._location(target)
        if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
            raise ParseError(f"No air quality data found for location {location.name}")
        first = payload[0]
        timestamp = _observed_at(first)
        if timestamp is None:
            logger.debug("No observation time for %s; using fetch time", location.name)
            timestamp = utc_now().replace(second=0, microsecond=0)

        reading = AirQualityReading(
            station_id=location.name,
            timestamp=timestamp,
            latitude=location.latitude,
            longitude=location.longitude,
            aqi=optional_int(first, "AQI"),
            raw_payload=payload,
        )
        for entry in payload:
            parameter = (optional_str(entry, "ParameterName") or "").upper()
            field_name = POLLUTANT_ALIASES.get(parameter)
            if field_name is None:
                if parameter:
                    logger.debug("Ignoring unknown pollutant %s for %s", parameter, location.name)
                continue
            if getattr(reading, field_name) is not None:
                continue
            setattr(reading, field_name, optional_float(entry, "Value"))
        return [reading]

    @staticmethod
    def _location(target: Any) -> Location:
        if isinstance(target, Location):
            return target
        raise ParseError(f"Unsupported air quality target: {target!r}")


__all__ = ["AirQualityAdapter", "POLLUTANT_ALIASES"]
