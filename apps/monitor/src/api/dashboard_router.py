from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.v1.dependencies import get_services
from services.container import MonitorServices
from services.dashboard import DEFAULT_WINDOW_HOURS
from services.errors import AggregationError, UnknownSourceError

router = APIRouter(prefix="/dashboard", tags=["dashboard"])
logger = logging.getLogger("envmonitor.hub.api.dashboard")


@router.get("/data")
async def dashboard_data(
    hours: int = Query(DEFAULT_WINDOW_HOURS, gt=0, description="Lookback window in hours"),
    services: MonitorServices = Depends(get_services),
) -> Dict[str, Any]:
    try:
        snapshot = await services.dashboard.snapshot(hours)
    except AggregationError as exc:
        logger.error("Dashboard snapshot for %dh failed: %s", hours, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load dashboard data",
        ) from exc
    return snapshot.to_payload()


@router.post("/refresh/{source}")
async def refresh_source(source: str, services: MonitorServices = Depends(get_services)) -> str:
    try:
        services.refresh.trigger(source)
    except UnknownSourceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return f"Refresh initiated for {source}"
