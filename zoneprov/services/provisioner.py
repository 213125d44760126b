"""Zone provisioning workflow: verify -> detect tier -> template -> clone/create.

Legacy (Solaris 10) global zones clone every test zone from a halted template
that is built on the first run and reused afterwards.  Current (Solaris 11)
global zones install test zones directly.
"""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass
from typing import Callable, Optional

from zoneprov.config import Settings, settings
from zoneprov.errors import ControlHostUnavailableError, InvalidZoneStateError
from zoneprov.models.zone import CapabilityTier, ExternalState, ZoneRole, ZoneStatus
from zoneprov.services.credentials import ensure_keypair, read_public_key
from zoneprov.services.ssh_channel import SSHSession
from zoneprov.services.zones import GlobalZone, Zone
from zoneprov.utils.logging import get_logger

log = get_logger(__name__)

ZONE_USERNAME = "root"


def generate_zone_name(prefix: str = "kitchen") -> str:
    """A fresh test zone name: *prefix* plus 48 random bits."""
    return f"{prefix}-{secrets.token_hex(6)}"


class TemplateLocks:
    """One lock per (global zone, template) pair.

    Held while a run checks, builds or halts the template and clones from
    it, so concurrent runs in this process never race on the template.
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def for_template(self, hostname: str, template: str) -> asyncio.Lock:
        key = (hostname, template)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def clear(self) -> None:
        self._locks.clear()


template_locks = TemplateLocks()


@dataclass
class ProvisioningContext:
    """Every handle opened by one run, so cleanup never guesses."""

    global_zone: GlobalZone
    template: Optional[Zone] = None
    instance: Optional[Zone] = None

    async def sever_all(self) -> None:
        for handle in (self.instance, self.template, self.global_zone):
            if handle is not None:
                await handle.sever()


async def _verify_global_zone(gz: GlobalZone) -> None:
    rc = await gz.verify_connection()
    if rc != 0:
        log.error("provision.verify_failed", host=gz.hostname, rc=rc)
        raise ControlHostUnavailableError(
            f"Could not verify your global zone {gz.hostname!r} (exit code {rc}) "
            "- verify host, username, and password",
        )


async def _ensure_template(template: Zone) -> None:
    """Make sure the template exists and is halted."""
    status = await template.refresh()
    if status is ZoneStatus.absent:
        log.info("provision.template_missing", template=template.name)
        await template.create()
        await template.halt()
        return
    log.debug("provision.template_found", template=template.name, status=status.value)
    if status is ZoneStatus.running:
        await template.halt()
    elif status is ZoneStatus.stopped:
        await template.unmount()
    else:
        raise InvalidZoneStateError(
            f"template zone {template.name} is {template.remote_state}; "
            "remove it on the global zone so the next run can rebuild it",
        )


async def create_zone(
    state: ExternalState | None = None,
    *,
    cfg: Settings | None = None,
    session_factory: Callable[..., SSHSession] | None = None,
    locks: TemplateLocks | None = None,
) -> ExternalState:
    """Provision a disposable test zone and return its connection state."""
    _cfg = cfg or settings
    _locks = locks or template_locks
    _state = state or ExternalState()

    ensure_keypair(_cfg.zone_private_key_path, _cfg.zone_public_key_path)
    public_key = read_public_key(_cfg.zone_public_key_path)

    ctx = ProvisioningContext(
        global_zone=GlobalZone.from_settings(_cfg, session_factory=session_factory),
    )
    try:
        gz = ctx.global_zone
        await _verify_global_zone(gz)
        tier = await gz.detect_capability_tier()

        ctx.instance = Zone(
            generate_zone_name(_cfg.zone_name_prefix),
            global_zone=gz,
            role=ZoneRole.disposable,
            password=_cfg.zone_test_password,
            ip=_cfg.zone_test_ip,
            public_key=public_key,
        )

        if tier is CapabilityTier.legacy:
            ctx.template = Zone(
                _cfg.zone_template_name,
                global_zone=gz,
                role=ZoneRole.template,
                password=_cfg.zone_template_password,
                ip=_cfg.zone_template_ip,
            )
            async with _locks.for_template(gz.hostname, ctx.template.name):
                await _ensure_template(ctx.template)
                await ctx.instance.clone_from(ctx.template)
        else:
            await ctx.instance.create()

        log.info(
            "provision.created",
            zone=ctx.instance.name,
            tier=tier.value,
            ip=ctx.instance.ip,
        )
        return _state.model_copy(
            update={
                "zone_id": ctx.instance.name,
                "hostname": ctx.instance.ip,
                "username": ZONE_USERNAME,
                "password": ctx.instance.password,
                "ssh_key": _cfg.zone_private_key_path,
            },
        )
    finally:
        await ctx.sever_all()


async def destroy_zone(
    state: ExternalState,
    *,
    cfg: Settings | None = None,
    session_factory: Callable[..., SSHSession] | None = None,
) -> ExternalState:
    """Destroy the zone recorded in *state* and clear its ``zone_id``."""
    if state.zone_id is None:
        return state
    _cfg = cfg or settings

    ctx = ProvisioningContext(
        global_zone=GlobalZone.from_settings(_cfg, session_factory=session_factory),
    )
    try:
        gz = ctx.global_zone
        await _verify_global_zone(gz)

        ctx.instance = Zone(
            state.zone_id,
            global_zone=gz,
            role=ZoneRole.disposable,
            password=state.password,
            ip=_cfg.zone_test_ip,
        )
        if await ctx.instance.refresh() is ZoneStatus.absent:
            log.warning("provision.already_gone", zone=state.zone_id)
        else:
            await ctx.instance.destroy()
            log.info("provision.destroyed", zone=state.zone_id)
        return state.model_copy(update={"zone_id": None})
    finally:
        await ctx.sever_all()


async def zone_status(
    name: str,
    *,
    cfg: Settings | None = None,
    session_factory: Callable[..., SSHSession] | None = None,
) -> Zone:
    """Look up a zone by name; the returned handle is already severed."""
    _cfg = cfg or settings

    ctx = ProvisioningContext(
        global_zone=GlobalZone.from_settings(_cfg, session_factory=session_factory),
    )
    try:
        await _verify_global_zone(ctx.global_zone)
        ctx.instance = Zone(name, global_zone=ctx.global_zone)
        await ctx.instance.refresh()
        return ctx.instance
    finally:
        await ctx.sever_all()
