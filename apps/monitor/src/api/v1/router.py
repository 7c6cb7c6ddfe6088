from fastapi import APIRouter, Depends, Request

from services.container import MonitorServices
from .dependencies import get_services
from .fires_router import router as fires_router
from .readings_router import router as readings_router
from .sources_router import router as sources_router
from .webcams_router import router as webcams_router

router = APIRouter(prefix="/api/v1", tags=["v1"])
router.include_router(sources_router)
router.include_router(readings_router)
router.include_router(fires_router)
router.include_router(webcams_router)


@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "version": request.app.state.settings.app_version}


@router.get("/info")
async def info(services: MonitorServices = Depends(get_services)):
    scheduler = services.scheduler
    current = services.settings
    return {
        "name": current.app_name,
        "version": current.app_version,
        "debug": current.debug,
        "cors_origins": current.cors_origins,
        "database_path": str(services.store.db_path),
        "scheduler_enabled": current.scheduler_enabled,
        "scheduler_running": scheduler.running,
        "sources": {
            token: {
                "source_name": adapter.source_name,
                "interval_seconds": scheduler.interval_for(token),
                "in_flight": scheduler.in_flight(token),
            }
            for token, adapter in services.adapters.items()
        },
        "recent_jobs": [job.to_payload() for job in scheduler.recent_jobs()[-20:]],
    }
