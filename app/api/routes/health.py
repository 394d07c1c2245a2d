import logging
import time

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from app.api.deps import get_app_settings
from app.core.config import Settings
from app.core.db import Database, get_database
from app.schemas.envelope import Envelope
from app.schemas.health import HealthOut

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


def _health(request: Request, settings: Settings, health_status: str = "UP") -> HealthOut:
    started_at = getattr(request.app.state, "started_at", None)
    uptime = time.monotonic() - started_at if started_at is not None else 0.0
    return HealthOut(status=health_status, uptime=round(uptime, 3), version=settings.api_version)


@router.get("/health", response_model=Envelope[HealthOut])
@router.get("/health/live", response_model=Envelope[HealthOut])
@router.get("/actuator/health", response_model=Envelope[HealthOut])
async def liveness(request: Request, settings: Settings = Depends(get_app_settings)):
    return Envelope[HealthOut].ok("Service is up", _health(request, settings))


@router.get("/health/ready", response_model=Envelope[HealthOut])
async def readiness(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    db: Database = Depends(get_database),
):
    try:
        await db.ping()
    except Exception as exc:
        logger.error("Readiness check failed", extra={"error": str(exc)})
        body = Envelope[HealthOut](
            success=False,
            message="Database unavailable",
            data=_health(request, settings, "DOWN"),
            error={"type": "DATABASE_ERROR"},
        )
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump())
    return Envelope[HealthOut].ok("Service is ready", _health(request, settings))
