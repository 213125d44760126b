"""Utilities for parsing Solaris zone tooling output."""

from __future__ import annotations

import re
from typing import Optional

from zoneprov.models.commands import CommandResult
from zoneprov.models.zone import CapabilityTier, ZoneStatus


# ---------------------------------------------------------------------------
# Missing-zone detection
# ---------------------------------------------------------------------------

NO_SUCH_ZONE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"No such zone configured", re.IGNORECASE),
    re.compile(r"zone .* not found", re.IGNORECASE),
    re.compile(r"No such zone", re.IGNORECASE),
]


def is_missing_zone(result: CommandResult) -> bool:
    """True when a failed ``zoneadm``/``zonecfg`` call reports an unknown zone.

    With a pty both streams arrive on stdout, so both are searched.
    """
    if result.ok:
        return False
    text = result.output
    return any(pat.search(text) for pat in NO_SUCH_ZONE_PATTERNS)


# ---------------------------------------------------------------------------
# zoneadm list -p parsing
# ---------------------------------------------------------------------------

# zoneadm list -p: zoneid:zonename:state:zonepath:uuid:brand:ip-type
_LIST_FIELDS = ("id", "name", "state", "path", "uuid", "brand", "ip_type")

REMOTE_STATE_MAP: dict[str, ZoneStatus] = {
    "running": ZoneStatus.running,
    "ready": ZoneStatus.running,
    "shutting_down": ZoneStatus.running,
    "down": ZoneStatus.running,
    "installed": ZoneStatus.stopped,
    # installed with its root mounted by the global zone; unmount before use
    "mounted": ZoneStatus.stopped,
    "configured": ZoneStatus.incomplete,
    "incomplete": ZoneStatus.incomplete,
    "unavailable": ZoneStatus.incomplete,
}


def parse_zoneadm_list(output: str, name: str) -> Optional[dict[str, str]]:
    """Return the parsed ``list -p`` record for *name*, or None."""
    for line in output.splitlines():
        parts = line.strip().split(":")
        if len(parts) < 3:
            continue
        record = dict(zip(_LIST_FIELDS, parts))
        if record["name"] == name:
            return record
    return None


def zone_status_from_state(state: str) -> ZoneStatus:
    return REMOTE_STATE_MAP.get(state.strip().lower(), ZoneStatus.unknown)


# ---------------------------------------------------------------------------
# Release / capability tier
# ---------------------------------------------------------------------------

RELEASE_TIERS: dict[str, CapabilityTier] = {
    "5.10": CapabilityTier.legacy,
    "5.11": CapabilityTier.current,
}


def parse_release(output: str) -> str:
    """Extract the SunOS release (``5.10``, ``5.11``) from ``uname -r``."""
    m = re.search(r"\b(\d+\.\d+)\b", output)
    return m.group(1) if m else ""


def tier_for_release(release: str) -> Optional[CapabilityTier]:
    return RELEASE_TIERS.get(release)
