from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Any, Optional

from .units import isoformat


def _date_iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class StationWeatherReading:
    """Latest observation from one weather.gov ground station."""

    station_id: str
    timestamp: datetime
    temperature_f: Optional[float] = None
    humidity_pct: Optional[float] = None
    pressure_inhg: Optional[float] = None
    wind_speed_mph: Optional[float] = None
    wind_direction_deg: Optional[int] = None
    visibility_miles: Optional[float] = None
    conditions_text: Optional[str] = None
    raw_payload: Any = None
    created_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.station_id

    def to_payload(self) -> dict[str, Any]:
        return {
            "stationId": self.station_id,
            "timestamp": isoformat(self.timestamp),
            "temperatureF": self.temperature_f,
            "humidityPct": self.humidity_pct,
            "pressureInHg": self.pressure_inhg,
            "windSpeedMph": self.wind_speed_mph,
            "windDirectionDeg": self.wind_direction_deg,
            "visibilityMiles": self.visibility_miles,
            "conditions": self.conditions_text,
            "createdAt": isoformat(self.created_at),
        }


@dataclass(slots=True)
class GriddedForecastReading:
    """Current conditions for one grid point of the forecast model."""

    latitude: float
    longitude: float
    timestamp: datetime
    temperature_f: Optional[float] = None
    humidity_pct: Optional[float] = None
    precipitation: Optional[float] = None
    wind_speed_mph: Optional[float] = None
    wind_direction_deg: Optional[int] = None
    uv_index: Optional[float] = None
    raw_payload: Any = None
    created_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_payload(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": isoformat(self.timestamp),
            "temperatureF": self.temperature_f,
            "humidityPct": self.humidity_pct,
            "precipitation": self.precipitation,
            "windSpeedMph": self.wind_speed_mph,
            "windDirectionDeg": self.wind_direction_deg,
            "uvIndex": self.uv_index,
            "createdAt": isoformat(self.created_at),
        }


@dataclass(slots=True)
class MarineReading:
    station_id: str
    timestamp: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    water_level: Optional[float] = None
    wave_height: Optional[float] = None
    wave_period: Optional[float] = None
    wave_direction: Optional[int] = None
    water_temperature: Optional[float] = None
    salinity: Optional[float] = None
    raw_payload: Any = None
    created_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.station_id

    def to_payload(self) -> dict[str, Any]:
        return {
            "stationId": self.station_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": isoformat(self.timestamp),
            "waterLevel": self.water_level,
            "waveHeight": self.wave_height,
            "wavePeriod": self.wave_period,
            "waveDirection": self.wave_direction,
            "waterTemperature": self.water_temperature,
            "salinity": self.salinity,
            "createdAt": isoformat(self.created_at),
        }


POLLUTANT_FIELDS = ("pm25", "pm10", "no2", "o3", "so2", "co")


@dataclass(slots=True)
class AirQualityReading:
    """AQI observation for a labelled location.

    Only the pollutant reported by the upstream response is populated; the
    other pollutant fields stay ``None``.
    """

    station_id: str
    timestamp: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    aqi: Optional[int] = None
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    no2: Optional[float] = None
    o3: Optional[float] = None
    so2: Optional[float] = None
    co: Optional[float] = None
    raw_payload: Any = None
    created_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.station_id

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "stationId": self.station_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": isoformat(self.timestamp),
            "aqi": self.aqi,
        }
        for name in POLLUTANT_FIELDS:
            payload[name] = getattr(self, name)
        payload["createdAt"] = isoformat(self.created_at)
        return payload


@dataclass(slots=True)
class WildfireEntity:
    """Long-lived fire incident, identified by the feed's incident id."""

    fire_id: str
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    discovery_date: Optional[date] = None
    containment_date: Optional[date] = None
    size_acres: Optional[float] = None
    cause: Optional[str] = None
    status: Optional[str] = None
    incident_type: Optional[str] = None
    raw_payload: Any = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.fire_id

    def to_payload(self) -> dict[str, Any]:
        return {
            "fireId": self.fire_id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "discoveryDate": _date_iso(self.discovery_date),
            "containmentDate": _date_iso(self.containment_date),
            "sizeAcres": self.size_acres,
            "cause": self.cause,
            "status": self.status,
            "incidentType": self.incident_type,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


# Attributes a re-ingest may overwrite; identity and bookkeeping stay put.
WILDFIRE_MERGE_FIELDS = tuple(
    f.name for f in fields(WildfireEntity) if f.name not in {"fire_id", "created_at", "updated_at"}
)


@dataclass(slots=True)
class SourceHealth:
    source_name: str
    last_success_at: Optional[datetime] = None
    last_error_at: Optional[datetime] = None
    last_error_message: Optional[str] = None
    fetch_count: int = 0
    error_count: int = 0
    is_active: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {
            "sourceName": self.source_name,
            "lastSuccessAt": isoformat(self.last_success_at),
            "lastErrorAt": isoformat(self.last_error_at),
            "lastErrorMessage": self.last_error_message,
            "fetchCount": self.fetch_count,
            "errorCount": self.error_count,
            "isActive": self.is_active,
        }


@dataclass(slots=True)
class Webcam:
    webcam_id: str
    name: str
    url: str
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    thumbnail_url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {
            "webcamId": self.webcam_id,
            "name": self.name,
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "url": self.url,
            "thumbnailUrl": self.thumbnail_url,
            "description": self.description,
            "category": self.category,
            "isActive": self.is_active,
        }


@dataclass(slots=True)
class DashboardSnapshot:
    """Read-time join of every source for one window size."""

    hours: int
    generated_at: datetime
    recent_weather: list[StationWeatherReading] = field(default_factory=list)
    recent_meteo: list[GriddedForecastReading] = field(default_factory=list)
    recent_marine: list[MarineReading] = field(default_factory=list)
    recent_air_quality: list[AirQualityReading] = field(default_factory=list)
    recent_fires: list[WildfireEntity] = field(default_factory=list)
    active_webcams: list[Webcam] = field(default_factory=list)
    source_statuses: list[SourceHealth] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "hours": self.hours,
            "generatedAt": isoformat(self.generated_at),
            "recentWeatherData": [item.to_payload() for item in self.recent_weather],
            "recentMeteoData": [item.to_payload() for item in self.recent_meteo],
            "recentMarineData": [item.to_payload() for item in self.recent_marine],
            "recentAirQualityData": [item.to_payload() for item in self.recent_air_quality],
            "recentFireData": [item.to_payload() for item in self.recent_fires],
            "activeWebcams": [item.to_payload() for item in self.active_webcams],
            "dataSourceStatuses": [item.to_payload() for item in self.source_statuses],
        }


__all__ = [
    "AirQualityReading",
    "DashboardSnapshot",
    "GriddedForecastReading",
    "MarineReading",
    "POLLUTANT_FIELDS",
    "SourceHealth",
    "StationWeatherReading",
    "Webcam",
    "WILDFIRE_MERGE_FIELDS",
    "WildfireEntity",
]
