"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("ZONE_GLOBAL_HOSTNAME", "gz.test.local")
os.environ.setdefault("ZONE_GLOBAL_PASSWORD", "test")
os.environ.setdefault("ZONE_API_KEY", "")
os.environ.setdefault("ZONE_TEST_IP", "10.0.0.50")
os.environ.setdefault("ZONE_TEMPLATE_IP", "10.0.0.49")

import pytest
from httpx import ASGITransport, AsyncClient

from tests.mock_ssh import FakeZoneHost


@pytest.fixture
def fake_host():
    """A fresh Solaris 11 global zone."""
    return FakeZoneHost(tier="current")


@pytest.fixture
def legacy_host():
    """A fresh Solaris 10 global zone with no template yet."""
    return FakeZoneHost(tier="legacy")


@pytest.fixture
def settings(tmp_path):
    from zoneprov.config import Settings

    return Settings(
        zone_global_hostname="gz.test.local",
        zone_global_password="gz-secret",
        zone_test_ip="10.0.0.50",
        zone_test_password="tulips!tulips",
        zone_template_ip="10.0.0.49",
        zone_private_key_path=str(tmp_path / "keys" / "zone_id_rsa"),
        zone_public_key_path=str(tmp_path / "keys" / "zone_id_rsa.pub"),
    )


@pytest.fixture(autouse=True)
def _reset_template_locks():
    from zoneprov.services.provisioner import template_locks

    template_locks.clear()
    yield
    template_locks.clear()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client(fake_host, settings):
    """Async test client with the fake global zone injected."""
    import zoneprov.services.capabilities as caps_mod
    import zoneprov.services.provisioner as prov_mod
    import zoneprov.services.ssh_channel as ssh_mod
    import zoneprov.routers.health as rh

    original_factory = ssh_mod.session_factory
    original_prov_settings = prov_mod.settings
    original_caps_settings = caps_mod.settings
    original_health_settings = rh.settings

    ssh_mod.session_factory = fake_host.open_session
    prov_mod.settings = settings
    caps_mod.settings = settings
    rh.settings = settings

    from zoneprov.main import app as fastapi_app

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Restore
    ssh_mod.session_factory = original_factory
    prov_mod.settings = original_prov_settings
    caps_mod.settings = original_caps_settings
    rh.settings = original_health_settings
