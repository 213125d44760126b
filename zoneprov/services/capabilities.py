"""Global zone capability detection (release, tier, provisioning strategy)."""

from __future__ import annotations

from typing import Callable

from zoneprov.config import Settings, settings
from zoneprov.errors import ControlHostUnavailableError
from zoneprov.models.responses import CapabilitiesResponse
from zoneprov.models.zone import CapabilityTier
from zoneprov.services.ssh_channel import SSHSession
from zoneprov.services.zones import GlobalZone
from zoneprov.utils.logging import get_logger

log = get_logger(__name__)


async def detect_capabilities(
    *,
    cfg: Settings | None = None,
    session_factory: Callable[..., SSHSession] | None = None,
) -> CapabilitiesResponse:
    """Query the global zone for its release and provisioning strategy."""
    _cfg = cfg or settings
    gz = GlobalZone.from_settings(_cfg, session_factory=session_factory)
    try:
        rc = await gz.verify_connection()
        if rc != 0:
            raise ControlHostUnavailableError(
                f"Could not verify your global zone {gz.hostname!r} (exit code {rc})",
            )
        tier = await gz.detect_capability_tier()
        caps = CapabilitiesResponse(
            hostname=gz.hostname,
            tier=tier,
            release=gz.release,
            version=await gz.version(),
            template_name=_cfg.zone_template_name,
            uses_template=tier is CapabilityTier.legacy,
        )
    finally:
        await gz.sever()

    log.info("capabilities.detected", tier=tier.value, release=caps.release)
    return caps


async def check_control_host(
    *,
    cfg: Settings | None = None,
    session_factory: Callable[..., SSHSession] | None = None,
) -> int:
    """Exit code of the global zone verification (255 when unreachable)."""
    gz = GlobalZone.from_settings(cfg or settings, session_factory=session_factory)
    try:
        return await gz.verify_connection()
    finally:
        await gz.sever()
