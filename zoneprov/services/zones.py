"""Handles bound to one zone: the global (control) zone and managed zones.

Each handle drives its own SSH session to the global zone.  ``Zone`` keeps an
explicit ``status`` that only its own lifecycle operations change; every
operation checks the source status before touching the remote host.
"""

from __future__ import annotations

from typing import Callable, Optional

from zoneprov.config import Settings, settings
from zoneprov.errors import (
    HandleSeveredError,
    InvalidZoneStateError,
    TransportError,
    UnsupportedHostError,
    ZoneCommandError,
)
from zoneprov.models.commands import CommandResult
from zoneprov.models.zone import CapabilityTier, ZoneRole, ZoneStatus
from zoneprov.services import ssh_channel
from zoneprov.services import zone_commands as cmds
from zoneprov.services.ssh_channel import ConnectionParams, SSHSession
from zoneprov.utils.logging import get_logger
from zoneprov.utils.zone_parser import (
    is_missing_zone,
    parse_release,
    parse_zoneadm_list,
    tier_for_release,
    zone_status_from_state,
)

log = get_logger(__name__)

# ssh(1) reports connection and authentication failures the same way.
UNREACHABLE_EXIT_CODE = 255


class ZoneHandle:
    """Common session plumbing for every handle role."""

    role: ZoneRole

    def __init__(self, name: str, *, cfg: Settings | None = None) -> None:
        self.name = name
        self._cfg = cfg or settings
        self._session: Optional[SSHSession] = None
        self._severed = False
        self._secrets: list[str] = []

    def _open_session(self) -> SSHSession:
        raise NotImplementedError

    def _session_or_open(self) -> SSHSession:
        if self._severed:
            raise HandleSeveredError(f"{self.role.value} handle {self.name} is severed")
        if self._session is None:
            self._session = self._open_session()
        return self._session

    def _redact(self, command: str) -> str:
        for secret in self._secrets:
            if secret:
                command = command.replace(secret, "****")
        return command

    async def _run(
        self,
        command: str,
        *,
        timeout: float | None = None,
        stdin: Optional[bytes] = None,
        sensitive: bool = False,
    ) -> CommandResult:
        """Run *command*; *sensitive* keeps its stdout out of the logs."""
        session = self._session_or_open()
        deadline = timeout or self._cfg.zone_command_timeout_seconds
        log.debug("zone.exec", zone=self.name, cmd=self._redact(command))
        result = await session.execute(command, timeout=deadline, stdin=stdin)
        log.debug(
            "zone.exec_done",
            zone=self.name,
            rc=result.exit_code,
            out="****" if sensitive else self._redact((result.stdout or "")[:200]),
        )
        return result

    async def _check(
        self,
        command: str,
        action: str,
        *,
        timeout: float | None = None,
        stdin: Optional[bytes] = None,
        sensitive: bool = False,
    ) -> CommandResult:
        result = await self._run(
            command, timeout=timeout, stdin=stdin, sensitive=sensitive,
        )
        if not result.ok:
            log.error(
                "zone.command_failed",
                zone=self.name,
                action=action,
                rc=result.exit_code,
                output="****" if sensitive else self._redact(result.output[:200]),
            )
            raise ZoneCommandError(self.name, action, result)
        return result

    async def sever(self) -> None:
        """Release the session; the remote zone is left as it is."""
        if self._severed:
            return
        self._severed = True
        if self._session is not None:
            await self._session.close()
            self._session = None
        log.debug("zone.severed", zone=self.name, role=self.role.value)

    @property
    def severed(self) -> bool:
        return self._severed


class GlobalZone(ZoneHandle):
    """The always-on global zone that hosts every managed zone."""

    role = ZoneRole.control

    def __init__(
        self,
        hostname: str,
        *,
        username: str = "root",
        password: str | None = None,
        port: int = 22,
        key_path: str | None = None,
        cfg: Settings | None = None,
        session_factory: Callable[..., SSHSession] | None = None,
    ) -> None:
        super().__init__("global", cfg=cfg)
        self.hostname = hostname
        self.username = username
        self.password = password
        self.port = port
        self.key_path = key_path
        self._factory = session_factory
        self.capability_tier: Optional[CapabilityTier] = None
        self.release: str = ""
        if password:
            self._secrets.append(password)

    @classmethod
    def from_settings(
        cls,
        cfg: Settings,
        *,
        session_factory: Callable[..., SSHSession] | None = None,
    ) -> GlobalZone:
        return cls(
            cfg.zone_global_hostname,
            username=cfg.zone_global_username,
            password=cfg.zone_global_password or None,
            port=cfg.zone_global_port,
            key_path=cfg.zone_global_ssh_key_path or None,
            cfg=cfg,
            session_factory=session_factory,
        )

    @property
    def params(self) -> ConnectionParams:
        return ConnectionParams(
            host=self.hostname,
            port=self.port,
            username=self.username,
            password=self.password,
            key_path=self.key_path,
            connect_timeout=self._cfg.zone_connect_timeout_seconds,
        )

    def open_session(self) -> SSHSession:
        """A new session to this host, for handles of zones living on it."""
        factory = self._factory or ssh_channel.session_factory
        return factory(self.params, request_pty=self._cfg.zone_request_pty)

    def _open_session(self) -> SSHSession:
        return self.open_session()

    async def verify_connection(self) -> int:
        """Exit code of a trivial command; 255 if no session could be made."""
        try:
            result = await self._run(cmds.VERIFY_COMMAND)
        except TransportError as exc:
            log.warning("zone.verify_failed", host=self.hostname, error=str(exc))
            return UNREACHABLE_EXIT_CODE
        return result.exit_code

    async def detect_capability_tier(self) -> CapabilityTier:
        if self.capability_tier is not None:
            return self.capability_tier
        result = await self._check(cmds.RELEASE_COMMAND, "release query")
        release = parse_release(result.stdout or "")
        tier = tier_for_release(release)
        if tier is None:
            raise UnsupportedHostError(
                f"global zone {self.hostname} runs SunOS {release or 'unknown'}; "
                "only 5.10 and 5.11 are supported",
            )
        self.release = release
        self.capability_tier = tier
        log.info("zone.tier_detected", host=self.hostname, release=release, tier=tier.value)
        return tier

    async def version(self) -> str:
        result = await self._run(cmds.VERSION_COMMAND)
        return (result.stdout or "").strip() if result.ok else ""


class Zone(ZoneHandle):
    """A template or disposable zone managed through the global zone."""

    def __init__(
        self,
        name: str,
        *,
        global_zone: GlobalZone | None = None,
        role: ZoneRole = ZoneRole.disposable,
        password: str | None = None,
        ip: str | None = None,
        public_key: str | None = None,
        cfg: Settings | None = None,
    ) -> None:
        super().__init__(name, cfg=cfg or (global_zone._cfg if global_zone else None))
        self.global_zone = global_zone
        self.role = role
        self.password = password
        self.ip = ip or None
        self.public_key = public_key
        self.status = ZoneStatus.unknown
        self.remote_state: Optional[str] = None
        if password:
            self._secrets.append(password)

    def _open_session(self) -> SSHSession:
        return self._require_global().open_session()

    def _require_global(self) -> GlobalZone:
        if self.global_zone is None:
            raise InvalidZoneStateError(
                f"zone {self.name} has no global zone to run commands on",
            )
        return self.global_zone

    def _expect(self, action: str, *allowed: ZoneStatus) -> None:
        self._require_global()
        if self.status not in allowed:
            raise InvalidZoneStateError(
                f"cannot {action} zone {self.name} while {self.status.value} "
                f"(allowed: {', '.join(s.value for s in allowed)})",
            )

    @property
    def _root(self) -> str:
        return self._cfg.zone_root_path

    # ── queries ───────────────────────────────────────────────────────

    async def refresh(self) -> ZoneStatus:
        """Query the remote state and record it on the handle."""
        if self.status is ZoneStatus.destroyed:
            raise InvalidZoneStateError(f"zone {self.name} was destroyed")
        self._require_global()
        result = await self._run(cmds.list_zone(self.name))
        if is_missing_zone(result):
            self.remote_state = None
            self.status = ZoneStatus.absent
            return self.status
        if not result.ok:
            raise ZoneCommandError(self.name, "status query", result)
        record = parse_zoneadm_list(result.stdout or "", self.name)
        if record is None:
            self.remote_state = None
            self.status = ZoneStatus.absent
            return self.status
        self.remote_state = record["state"]
        self.status = zone_status_from_state(record["state"])
        return self.status

    async def exists(self) -> bool:
        return await self.refresh() is not ZoneStatus.absent

    async def running(self) -> bool:
        return await self.refresh() is ZoneStatus.running

    # ── lifecycle ─────────────────────────────────────────────────────

    async def create(self) -> ZoneStatus:
        """Configure, install and boot a new zone under this handle's name."""
        self._expect("create", ZoneStatus.unknown, ZoneStatus.absent)
        gz = self._require_global()
        tier = await gz.detect_capability_tier()
        install_timeout = self._cfg.zone_install_timeout_seconds

        log.info("zone.creating", zone=self.name, role=self.role.value, tier=tier.value)
        await self._check(
            cmds.configure_zone(
                self.name,
                root=self._root,
                interface=self._cfg.zone_network_interface,
                ip=self.ip,
            ),
            "configure",
        )
        self.status = ZoneStatus.incomplete
        await self._check(cmds.install(self.name), "install", timeout=install_timeout)
        self.status = ZoneStatus.stopped

        password_hash = await self._password_hash()
        if tier is CapabilityTier.legacy:
            await self._write_sysidcfg(password_hash)
        await self._boot()
        if tier is CapabilityTier.current and password_hash:
            await self._check(
                cmds.set_root_password(self.name, password_hash), "set password",
            )
        await self._finish_access()
        log.info("zone.created", zone=self.name, role=self.role.value)
        return self.status

    async def clone_from(self, template: Zone) -> ZoneStatus:
        """Provision this zone as a copy of a halted template."""
        self._expect("clone", ZoneStatus.unknown, ZoneStatus.absent)
        if template.status is not ZoneStatus.stopped:
            raise InvalidZoneStateError(
                f"template {template.name} must be stopped before cloning "
                f"(is {template.status.value})",
            )

        log.info("zone.cloning", zone=self.name, template=template.name)
        await self._check(
            cmds.configure_from_template(
                self.name,
                template.name,
                root=self._root,
                interface=self._cfg.zone_network_interface,
                ip=self.ip,
                template_has_net=template.ip is not None,
            ),
            "configure",
        )
        self.status = ZoneStatus.incomplete
        await self._check(
            cmds.clone(self.name, template.name),
            "clone",
            timeout=self._cfg.zone_install_timeout_seconds,
        )
        self.status = ZoneStatus.stopped

        await self._write_sysidcfg(await self._password_hash())
        await self._boot()
        await self._finish_access()
        log.info("zone.cloned", zone=self.name, template=template.name)
        return self.status

    async def halt(self) -> ZoneStatus:
        self._expect("halt", ZoneStatus.running)
        await self._check(cmds.halt(self.name), "halt")
        self.status = ZoneStatus.stopped
        self.remote_state = "installed"
        log.info("zone.halted", zone=self.name)
        return self.status

    async def unmount(self) -> ZoneStatus:
        """Release a root the global zone left mounted; no-op otherwise."""
        self._expect("unmount", ZoneStatus.stopped)
        if self.remote_state == "mounted":
            await self._check(cmds.unmount(self.name), "unmount")
            self.remote_state = "installed"
            log.info("zone.unmounted", zone=self.name)
        return self.status

    async def destroy(self) -> ZoneStatus:
        """Remove the zone for good; the handle is unusable afterwards."""
        self._expect(
            "destroy",
            ZoneStatus.running,
            ZoneStatus.stopped,
            ZoneStatus.incomplete,
        )
        if self.status is ZoneStatus.running:
            await self.halt()
        elif self.remote_state == "mounted":
            await self.unmount()
        if self.remote_state != "configured":
            await self._check(
                cmds.uninstall(self.name),
                "uninstall",
                timeout=self._cfg.zone_install_timeout_seconds,
            )
        await self._check(cmds.delete_configuration(self.name), "delete")
        self.status = ZoneStatus.destroyed
        self.remote_state = None
        log.info("zone.destroyed", zone=self.name)
        return self.status

    # ── helpers ───────────────────────────────────────────────────────

    async def _boot(self) -> None:
        await self._check(cmds.boot(self.name), "boot")
        self.status = ZoneStatus.running

    async def _password_hash(self) -> str:
        if not self.password:
            return ""
        result = await self._check(
            cmds.hash_password(cmds.new_salt()),
            "password hash",
            stdin=f"{self.password}\n".encode(),
            sensitive=True,
        )
        password_hash = (result.stdout or "").strip()
        # set_root_password embeds it with $ escaped
        self._secrets += [password_hash, password_hash.replace("$", "\\$")]
        return password_hash

    async def _write_sysidcfg(self, password_hash: str) -> None:
        content = cmds.render_sysidcfg(
            hostname=self.name,
            ip=self.ip,
            netmask=self._cfg.zone_netmask,
            password_hash=password_hash or "NP",
        )
        await self._check(
            cmds.write_sysidcfg(self.name, self._root, content), "write sysidcfg",
        )

    async def _finish_access(self) -> None:
        if self.public_key:
            await self._check(cmds.permit_root_login(self.name), "enable root login")
            await self._check(
                cmds.authorize_key(self.name, self._root, self.public_key),
                "authorize key",
            )
