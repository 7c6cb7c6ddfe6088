from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from services.container import MonitorServices
from .dependencies import get_services

router = APIRouter(prefix="/fires", tags=["fires"])


@router.get("")
async def fires_by_status(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    services: MonitorServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    if status_filter is None or not status_filter.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="status query parameter is required")
    fires = await services.store.fires_by_status(status_filter.strip())
    return [fire.to_payload() for fire in fires]


@router.get("/statuses")
async def fire_statuses(services: MonitorServices = Depends(get_services)) -> List[str]:
    return await services.store.fire_statuses()


@router.get("/large")
async def large_fires(
    min_acres: float = Query(1000.0, ge=0.0),
    services: MonitorServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return [fire.to_payload() for fire in await services.store.large_fires(min_acres)]


@router.get("/bbox")
async def fires_in_bbox(
    lat_min: float = Query(..., ge=-90.0, le=90.0),
    lat_max: float = Query(..., ge=-90.0, le=90.0),
    lon_min: float = Query(..., ge=-180.0, le=180.0),
    lon_max: float = Query(..., ge=-180.0, le=180.0),
    services: MonitorServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    if lat_min > lat_max or lon_min > lon_max:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bounding box minimum exceeds maximum")
    fires = await services.store.fires_in_bbox(lat_min=lat_min, lat_max=lat_max, lon_min=lon_min, lon_max=lon_max)
    return [fire.to_payload() for fire in fires]
