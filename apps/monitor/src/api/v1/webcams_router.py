from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from services.container import MonitorServices
from .dependencies import get_services

router = APIRouter(prefix="/webcams", tags=["webcams"])


@router.get("")
async def list_webcams(
    category: Optional[str] = Query(default=None),
    services: MonitorServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    if category:
        webcams = await services.webcams.by_category(category)
    else:
        webcams = await services.webcams.active()
    return [cam.to_payload() for cam in webcams]


@router.get("/categories")
async def webcam_categories(services: MonitorServices = Depends(get_services)) -> List[str]:
    return await services.webcams.categories()
