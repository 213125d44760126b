"""Common API response models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from zoneprov.models.zone import CapabilityTier, ZoneStatus


class HealthResponse(BaseModel):
    status: str
    version: str


class ControlHealthResponse(BaseModel):
    reachable: bool
    hostname: str
    exit_code: Optional[int] = None
    error: Optional[str] = None


class CapabilitiesResponse(BaseModel):
    hostname: str = ""
    tier: Optional[CapabilityTier] = None
    release: str = ""
    version: str = ""
    template_name: str = ""
    uses_template: bool = False


class ZoneStatusResponse(BaseModel):
    name: str
    exists: bool
    status: ZoneStatus
    remote_state: Optional[str] = None


class ErrorResponse(BaseModel):
    detail: str
