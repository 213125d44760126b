"""Zone lifecycle models: roles, statuses, capability tiers and caller state."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class CapabilityTier(str, Enum):
    """How the global zone can bring up new zones.

    ``legacy`` hosts (Solaris 10) clone a halted template; ``current`` hosts
    (Solaris 11) install zones directly.
    """

    legacy = "legacy"
    current = "current"


class ZoneRole(str, Enum):
    control = "control"
    template = "template"
    disposable = "disposable"


class ZoneStatus(str, Enum):
    unknown = "unknown"
    absent = "absent"
    incomplete = "incomplete"
    stopped = "stopped"
    running = "running"
    destroyed = "destroyed"


class ExternalState(BaseModel):
    """Connection record handed back to the test runner.

    ``create`` fills it in; ``destroy`` reads it back unchanged and clears
    ``zone_id`` once the zone is gone.
    """

    zone_id: Optional[str] = None
    hostname: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    ssh_key: Optional[str] = None
