from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List, Type

from fastapi import APIRouter, Depends, HTTPException, Query, status

from services.container import MonitorServices
from services.readings import AirQualityReading, GriddedForecastReading, MarineReading, StationWeatherReading
from services.units import utc_now
from .dependencies import get_services

router = APIRouter(tags=["readings"])

MAX_READINGS = 500


def _payloads(records: List[Any]) -> List[Dict[str, Any]]:
    return [record.to_payload() for record in records]


async def _station_readings(
    services: MonitorServices,
    record_type: Type[Any],
    station_id: str,
    limit: int,
) -> List[Dict[str, Any]]:
    return _payloads(await services.store.readings_for_key(record_type, station_id, limit=limit))


async def _latest(services: MonitorServices, record_type: Type[Any], station_id: str) -> Dict[str, Any]:
    reading = await services.store.latest_reading(record_type, station_id)
    if reading is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No readings for station {station_id}")
    return reading.to_payload()


# weather.gov stations ---------------------------------------------------------


@router.get("/weather/stations")
async def weather_stations(services: MonitorServices = Depends(get_services)) -> List[str]:
    return await services.store.distinct_keys(StationWeatherReading)


@router.get("/weather/stations/{station_id}")
async def weather_station_readings(
    station_id: str,
    limit: int = Query(100, ge=1, le=MAX_READINGS),
    services: MonitorServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return await _station_readings(services, StationWeatherReading, station_id.strip().upper(), limit)


@router.get("/weather/stations/{station_id}/latest")
async def weather_station_latest(station_id: str, services: MonitorServices = Depends(get_services)) -> Dict[str, Any]:
    return await _latest(services, StationWeatherReading, station_id.strip().upper())


# Marine stations --------------------------------------------------------------


@router.get("/marine/stations")
async def marine_stations(services: MonitorServices = Depends(get_services)) -> List[str]:
    return await services.store.distinct_keys(MarineReading)


@router.get("/marine/stations/{station_id}")
async def marine_station_readings(
    station_id: str,
    limit: int = Query(100, ge=1, le=MAX_READINGS),
    services: MonitorServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return await _station_readings(services, MarineReading, station_id.strip(), limit)


@router.get("/marine/stations/{station_id}/latest")
async def marine_station_latest(station_id: str, services: MonitorServices = Depends(get_services)) -> Dict[str, Any]:
    return await _latest(services, MarineReading, station_id.strip())


# Air quality ------------------------------------------------------------------


@router.get("/airquality/stations")
async def air_quality_stations(services: MonitorServices = Depends(get_services)) -> List[str]:
    return await services.store.distinct_keys(AirQualityReading)


@router.get("/airquality/stations/{station_id}")
async def air_quality_station_readings(
    station_id: str,
    limit: int = Query(100, ge=1, le=MAX_READINGS),
    services: MonitorServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return await _station_readings(services, AirQualityReading, station_id, limit)


@router.get("/airquality/high")
async def high_air_quality(
    threshold: int = Query(100, ge=0, description="Return readings with AQI above this value"),
    hours: int = Query(24, gt=0),
    services: MonitorServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    since = utc_now() - timedelta(hours=hours)
    return _payloads(await services.store.high_aqi_readings(threshold, since))


# Gridded forecast -------------------------------------------------------------


@router.get("/meteo/bbox")
async def meteo_in_bbox(
    lat_min: float = Query(..., ge=-90.0, le=90.0),
    lat_max: float = Query(..., ge=-90.0, le=90.0),
    lon_min: float = Query(..., ge=-180.0, le=180.0),
    lon_max: float = Query(..., ge=-180.0, le=180.0),
    hours: int = Query(24, gt=0),
    services: MonitorServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    if lat_min > lat_max or lon_min > lon_max:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bounding box minimum exceeds maximum")
    since = utc_now() - timedelta(hours=hours)
    readings = await services.store.readings_in_bbox(
        GriddedForecastReading,
        lat_min=lat_min,
        lat_max=lat_max,
        lon_min=lon_min,
        lon_max=lon_max,
        since=since,
    )
    return _payloads(readings)
