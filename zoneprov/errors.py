"""Exceptions raised while provisioning and tearing down zones."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from zoneprov.models.commands import CommandResult


class ZoneProvisioningError(Exception):
    """Base class for zone provisioning failures."""


class TransportError(ZoneProvisioningError):
    """The SSH session could not be opened or broke during a command."""


class AuthenticationFailedError(TransportError):
    """The remote host rejected the configured credentials."""


class CommandTimeoutError(TransportError):
    """A remote command did not finish before its deadline."""


class ControlHostUnavailableError(ZoneProvisioningError):
    """The global zone failed verification; nothing can be provisioned."""


class UnsupportedHostError(ZoneProvisioningError):
    """The global zone runs a release with no known provisioning strategy."""


class InvalidZoneStateError(ZoneProvisioningError):
    """A lifecycle operation was issued from a state that does not allow it."""


class HandleSeveredError(ZoneProvisioningError):
    """An operation was issued through a handle that was already severed."""


class ZoneCommandError(ZoneProvisioningError):
    """A zone lifecycle command exited non-zero."""

    def __init__(self, zone: str, action: str, result: CommandResult) -> None:
        self.zone = zone
        self.action = action
        self.result = result
        detail = result.stderr or result.stdout or ""
        super().__init__(
            f"{action} of zone {zone} failed with exit code "
            f"{result.exit_code}: {detail}".rstrip(": "),
        )


__all__ = [
    "ZoneProvisioningError",
    "TransportError",
    "AuthenticationFailedError",
    "CommandTimeoutError",
    "ControlHostUnavailableError",
    "UnsupportedHostError",
    "InvalidZoneStateError",
    "HandleSeveredError",
    "ZoneCommandError",
]
