"""Tests for the zone tooling parsers."""

from __future__ import annotations

from zoneprov.models.commands import CommandResult
from zoneprov.models.zone import CapabilityTier, ZoneStatus
from zoneprov.utils.zone_parser import (
    is_missing_zone,
    parse_release,
    parse_zoneadm_list,
    tier_for_release,
    zone_status_from_state,
)

LIST_OUTPUT = """\
0:global:running:/::native:shared
-:master:installed:/zones/master:2c3a-uuid:native:shared
3:kitchen-0a1b2c3d4e5f:running:/zones/kitchen-0a1b2c3d4e5f:9f1e-uuid:native:shared
"""


def _result(stdout=None, stderr=None, exit_code=0):
    return CommandResult(command="zoneadm", stdout=stdout, stderr=stderr, exit_code=exit_code)


class TestMissingZone:
    def test_no_such_zone_on_stderr(self):
        assert is_missing_zone(_result(stderr="zoneadm: master: No such zone configured", exit_code=1))

    def test_no_such_zone_on_stdout_with_pty(self):
        assert is_missing_zone(_result(stdout="zoneadm: master: No such zone configured", exit_code=1))

    def test_other_failure_is_not_missing(self):
        assert not is_missing_zone(_result(stderr="zoneadm: permission denied", exit_code=1))

    def test_success_is_not_missing(self):
        assert not is_missing_zone(_result(stdout="No such zone configured"))


class TestZoneadmList:
    def test_finds_named_zone(self):
        record = parse_zoneadm_list(LIST_OUTPUT, "master")
        assert record["state"] == "installed"
        assert record["path"] == "/zones/master"

    def test_unknown_zone(self):
        assert parse_zoneadm_list(LIST_OUTPUT, "nope") is None

    def test_ignores_garbage_lines(self):
        assert parse_zoneadm_list("\nwarning: something\n", "master") is None

    def test_state_mapping(self):
        assert zone_status_from_state("running") is ZoneStatus.running
        assert zone_status_from_state("ready") is ZoneStatus.running
        assert zone_status_from_state("installed") is ZoneStatus.stopped
        assert zone_status_from_state("configured") is ZoneStatus.incomplete
        assert zone_status_from_state("incomplete") is ZoneStatus.incomplete
        assert zone_status_from_state("mounted") is ZoneStatus.stopped

    def test_unrecognised_state_is_unknown(self):
        assert zone_status_from_state("migrating") is ZoneStatus.unknown


class TestRelease:
    def test_parse_release(self):
        assert parse_release("5.10\r") == "5.10"
        assert parse_release("5.11") == "5.11"
        assert parse_release("") == ""

    def test_tiers(self):
        assert tier_for_release("5.10") is CapabilityTier.legacy
        assert tier_for_release("5.11") is CapabilityTier.current
        assert tier_for_release("5.9") is None
