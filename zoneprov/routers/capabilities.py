"""Global zone capabilities detection endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from zoneprov.auth import require_api_key
from zoneprov.errors import ControlHostUnavailableError, ZoneProvisioningError
from zoneprov.models.responses import CapabilitiesResponse
from zoneprov.services.capabilities import detect_capabilities

router = APIRouter(tags=["capabilities"], dependencies=[Depends(require_api_key)])


@router.get("/capabilities", response_model=CapabilitiesResponse)
async def get_capabilities() -> CapabilitiesResponse:
    """Detect the global zone's release and provisioning strategy."""
    try:
        return await detect_capabilities()
    except ControlHostUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except ZoneProvisioningError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
