"""Application settings loaded from environment variables."""

from __future__ import annotations

import os

from pydantic import Field
from pydantic_settings import BaseSettings


def _kitchen_path(filename: str) -> str:
    return os.path.join(os.getcwd(), ".kitchen", filename)


class Settings(BaseSettings):
    """All configuration is driven by environment variables."""

    # Global (control) zone connection
    zone_global_hostname: str = ""
    zone_global_username: str = "root"
    zone_global_password: str = ""
    zone_global_port: int = 22
    zone_global_ssh_key_path: str = ""

    # Template zone
    zone_template_name: str = "master"
    zone_template_password: str = "llama!llama"
    zone_template_ip: str = ""

    # Disposable test zones
    zone_test_password: str = "tulips!tulips"
    zone_test_ip: str = ""
    zone_name_prefix: str = "kitchen"

    # Key pair injected into test zones
    zone_private_key_path: str = Field(
        default_factory=lambda: _kitchen_path("zone_id_rsa"),
    )
    zone_public_key_path: str = Field(
        default_factory=lambda: _kitchen_path("zone_id_rsa.pub"),
    )

    # Zone layout on the global zone
    zone_root_path: str = "/zones"
    zone_network_interface: str = "net0"
    zone_netmask: str = "255.255.255.0"

    # Transport
    zone_request_pty: bool = True
    zone_connect_timeout_seconds: int = 15
    zone_command_timeout_seconds: int = 120
    zone_install_timeout_seconds: int = 3600

    # API key
    zone_api_key: str = ""

    # Logging
    zone_log_level: str = "INFO"
    zone_log_json: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton – import this from anywhere
settings = Settings()
