from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import logging, time

from config import Settings, settings
from api.dashboard_router import router as dashboard_router
from api.v1.router import router as v1_router
from services.container import build_services

logger = logging.getLogger("envmonitor.hub")
if not logger.handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

def create_app(app_settings: Settings | None = None) -> FastAPI:
    config = app_settings or settings
    app = FastAPI(title=config.app_name, version=config.app_version)
    app.state.settings = config
    app.state.services = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        dur_ms = (time.perf_counter() - start) * 1000.0
        logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, dur_ms)
        return response

    @app.get("/", tags=["meta"])
    async def root():
        return {"name": config.app_name, "version": config.app_version}

    @app.get("/health", tags=["meta"])
    async def health():
        return JSONResponse({"status": "ok", "version": config.app_version})

    app.include_router(dashboard_router)
    app.include_router(v1_router)

    @app.on_event("startup")
    async def _startup():
        services = build_services(config)
        app.state.services = services
        if config.scheduler_enabled:
            await services.scheduler.start()
        else:
            logger.info("Scheduler disabled (set SCHEDULER_ENABLED=true to enable).")

    @app.on_event("shutdown")
    async def _shutdown():
        services = app.state.services
        if services is not None:
            await services.close()
            app.state.services = None

    return app

app = create_app()
