"""Shared-key check for the provisioning endpoints.

Test harnesses create and destroy zones on the global zone, so every router
except ``/health`` requires the ``X-API-Key`` header to match ``ZONE_API_KEY``.
"""

from __future__ import annotations

import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from zoneprov.config import settings

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_api_key(api_key: str | None = Security(_api_key_header)) -> str:
    """Reject callers without the shared key; open when ZONE_API_KEY is blank."""
    expected = settings.zone_api_key
    if not expected:
        return ""
    if api_key is None or not secrets.compare_digest(api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing or wrong X-API-Key for zone provisioning",
        )
    return api_key
