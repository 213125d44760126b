"""Zone lifecycle endpoints used by test runners."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from zoneprov.auth import require_api_key
from zoneprov.errors import ControlHostUnavailableError, ZoneProvisioningError
from zoneprov.models.responses import ZoneStatusResponse
from zoneprov.models.zone import ExternalState, ZoneStatus
from zoneprov.services import provisioner

router = APIRouter(prefix="/zones", tags=["zones"], dependencies=[Depends(require_api_key)])


def _raise_for(exc: ZoneProvisioningError) -> None:
    if isinstance(exc, ControlHostUnavailableError):
        raise HTTPException(status_code=503, detail=str(exc))
    raise HTTPException(status_code=502, detail=str(exc))


@router.post("/create", response_model=ExternalState)
async def create(state: ExternalState | None = None) -> ExternalState:
    """Provision a disposable zone and return how to reach it."""
    try:
        return await provisioner.create_zone(state or ExternalState())
    except ZoneProvisioningError as exc:
        _raise_for(exc)


@router.post("/destroy", response_model=ExternalState)
async def destroy(state: ExternalState) -> ExternalState:
    """Destroy the zone named in *state*; a state without ``zone_id`` is a no-op."""
    try:
        return await provisioner.destroy_zone(state)
    except ZoneProvisioningError as exc:
        _raise_for(exc)


@router.get("/{name}", response_model=ZoneStatusResponse)
async def status(name: str) -> ZoneStatusResponse:
    try:
        zone = await provisioner.zone_status(name)
    except ZoneProvisioningError as exc:
        _raise_for(exc)
    return ZoneStatusResponse(
        name=zone.name,
        exists=zone.status is not ZoneStatus.absent,
        status=zone.status,
        remote_state=zone.remote_state,
    )
