"""Health-check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from zoneprov import __version__
from zoneprov.auth import require_api_key
from zoneprov.config import settings
from zoneprov.models.responses import ControlHealthResponse, HealthResponse
from zoneprov.services.capabilities import check_control_host

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def service_health() -> HealthResponse:
    """Basic liveness check (no auth required)."""
    return HealthResponse(status="ok", version=__version__)


@router.get(
    "/control/health",
    response_model=ControlHealthResponse,
    dependencies=[Depends(require_api_key)],
)
async def control_health() -> ControlHealthResponse:
    """Check that the global zone accepts our session."""
    hostname = settings.zone_global_hostname
    try:
        rc = await check_control_host()
    except Exception as exc:
        return ControlHealthResponse(reachable=False, hostname=hostname, error=str(exc))
    return ControlHealthResponse(
        reachable=rc == 0,
        hostname=hostname,
        exit_code=rc,
        error=None if rc == 0 else "global zone verification failed",
    )
