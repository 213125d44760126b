"""Key pair injected into disposable zones for passwordless access."""

from __future__ import annotations

import os
from pathlib import Path

import paramiko

from zoneprov.utils.logging import get_logger

log = get_logger(__name__)

KEY_BITS = 2048
KEY_COMMENT = "kitchen_zone_key"


def ensure_keypair(
    private_path: str | os.PathLike,
    public_path: str | os.PathLike,
    *,
    bits: int = KEY_BITS,
    comment: str = KEY_COMMENT,
) -> bool:
    """Generate an RSA key pair unless both files already exist.

    Returns True when new files were written.
    """
    private_file = Path(private_path)
    public_file = Path(public_path)
    if private_file.exists() and public_file.exists():
        return False

    key = paramiko.RSAKey.generate(bits)
    for path in (private_file, public_file):
        path.parent.mkdir(parents=True, exist_ok=True)

    key.write_private_key_file(str(private_file))
    os.chmod(private_file, 0o600)

    public_file.write_text(
        f"{key.get_name()} {key.get_base64()} {comment}",
        encoding="utf-8",
    )
    os.chmod(public_file, 0o600)
    log.info("keys.generated", private=str(private_file), public=str(public_file))
    return True


def read_public_key(public_path: str | os.PathLike) -> str:
    return Path(public_path).read_text(encoding="utf-8").strip()
