from __future__ import annotations

from fastapi import HTTPException, Request, status

from services.container import MonitorServices


def get_services(request: Request) -> MonitorServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Services not ready")
    return services
