from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from services.container import MonitorServices
from services.errors import PersistenceError
from .dependencies import get_services

router = APIRouter(prefix="/sources", tags=["sources"])


class ActiveToggle(BaseModel):
    active: bool = Field(description="Whether the scheduler should keep polling this source.")


@router.get("")
async def list_sources(services: MonitorServices = Depends(get_services)) -> List[Dict[str, Any]]:
    return [entry.to_payload() for entry in await services.health.list()]


@router.get("/{name}")
async def get_source(name: str, services: MonitorServices = Depends(get_services)) -> Dict[str, Any]:
    current = await services.health.get(name)
    if current is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown data source: {name}")
    return current.to_payload()


@router.put("/{name}/active")
async def set_source_active(
    name: str,
    body: ActiveToggle,
    services: MonitorServices = Depends(get_services),
) -> Dict[str, Any]:
    known = {adapter.source_name for adapter in services.adapters.values()}
    if name not in known:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown data source: {name}")
    try:
        updated = await services.health.set_active(name, body.active)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Source status store unavailable") from exc
    return updated.to_payload()
