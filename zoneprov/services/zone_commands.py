"""Command lines for the Solaris zone tooling on the global zone.

Every function returns one shell command string for ``SSHSession.execute``.
Names, paths and passwords are always shell-quoted.
"""

from __future__ import annotations

import posixpath
import secrets
import string
from shlex import quote

ZONEADM = "/usr/sbin/zoneadm"
ZONECFG = "/usr/sbin/zonecfg"
ZLOGIN = "/usr/sbin/zlogin"

VERIFY_COMMAND = "echo connected"
RELEASE_COMMAND = "uname -r"
VERSION_COMMAND = "uname -v"

_SALT_CHARS = string.ascii_letters + string.digits + "./"


def zonepath(root: str, name: str) -> str:
    return posixpath.join(root, name)


def list_zone(name: str) -> str:
    return f"{ZONEADM} -z {quote(name)} list -p"


# ── configuration ─────────────────────────────────────────────────────────

def _net_resource(interface: str, ip: str | None) -> str:
    if not ip:
        return ""
    return f"add net; set physical={interface}; set address={ip}; end; "


def configure_zone(name: str, *, root: str, interface: str, ip: str | None) -> str:
    script = (
        f"create -b; set zonepath={zonepath(root, name)}; set autoboot=false; "
        f"set ip-type=shared; {_net_resource(interface, ip)}verify; commit"
    )
    return f"{ZONECFG} -z {quote(name)} {quote(script)}"


def configure_from_template(
    name: str,
    template: str,
    *,
    root: str,
    interface: str,
    ip: str | None,
    template_has_net: bool = False,
) -> str:
    # A cloned net resource would carry the template's address.
    remove_net = "remove -F net; " if template_has_net else ""
    script = (
        f"create -t {template}; set zonepath={zonepath(root, name)}; "
        f"set autoboot=false; {remove_net}"
        f"{_net_resource(interface, ip)}verify; commit"
    )
    return f"{ZONECFG} -z {quote(name)} {quote(script)}"


def delete_configuration(name: str) -> str:
    return f"{ZONECFG} -z {quote(name)} delete -F"


# ── zoneadm lifecycle ─────────────────────────────────────────────────────

def install(name: str) -> str:
    return f"{ZONEADM} -z {quote(name)} install"


def clone(name: str, template: str) -> str:
    return f"{ZONEADM} -z {quote(name)} clone {quote(template)}"


def boot(name: str) -> str:
    return f"{ZONEADM} -z {quote(name)} boot"


def halt(name: str) -> str:
    return f"{ZONEADM} -z {quote(name)} halt"


def unmount(name: str) -> str:
    return f"{ZONEADM} -z {quote(name)} unmount"


def uninstall(name: str) -> str:
    return f"{ZONEADM} -z {quote(name)} uninstall -F"


# ── first-boot configuration ──────────────────────────────────────────────

def new_salt() -> str:
    """An MD5-crypt (``$1$``) salt; DES salts keep only 8 password chars."""
    return "$1$" + "".join(secrets.choice(_SALT_CHARS) for _ in range(8)) + "$"


def hash_password(salt: str) -> str:
    """Ask the global zone's perl for a crypt(3) hash of the password on stdin."""
    return (
        "/usr/bin/perl -e 'chomp(my $pw = <STDIN>); print crypt($pw, $ARGV[0])' "
        f"{quote(salt)}"
    )


def render_sysidcfg(*, hostname: str, ip: str | None, netmask: str, password_hash: str) -> str:
    if ip:
        primary = (
            f"network_interface=primary {{hostname={hostname} ip_address={ip} "
            f"netmask={netmask} protocol_ipv6=no default_route=NONE}}"
        )
    else:
        primary = f"network_interface=NONE {{hostname={hostname}}}"
    lines = [
        "system_locale=C",
        "terminal=xterm",
        primary,
        "security_policy=NONE",
        "name_service=NONE",
        "nfs4_domain=dynamic",
        "timezone=UTC",
        f"root_password={password_hash}",
    ]
    return "\n".join(lines) + "\n"


def write_sysidcfg(name: str, root: str, content: str) -> str:
    path = posixpath.join(zonepath(root, name), "root", "etc", "sysidcfg")
    return f"printf '%s' {quote(content)} > {quote(path)}"


def set_root_password(name: str, password_hash: str) -> str:
    escaped = password_hash.replace("$", "\\$")
    inner = (
        f"/usr/bin/perl -pi -e 's#^root:[^:]*:#root:{escaped}:#' /etc/shadow"
    )
    return f"{ZLOGIN} {quote(name)} {quote(inner)}"


def permit_root_login(name: str) -> str:
    inner = (
        "/usr/bin/perl -pi -e 's/^PermitRootLogin\\s+no/PermitRootLogin yes/' "
        "/etc/ssh/sshd_config && /usr/sbin/svcadm restart ssh"
    )
    return f"{ZLOGIN} {quote(name)} {quote(inner)}"


def authorize_key(name: str, root: str, public_key: str) -> str:
    ssh_dir = posixpath.join(zonepath(root, name), "root", "root", ".ssh")
    keys = posixpath.join(ssh_dir, "authorized_keys")
    return (
        f"mkdir -p {quote(ssh_dir)} && chmod 700 {quote(ssh_dir)} && "
        f"printf '%s\\n' {quote(public_key)} >> {quote(keys)} && "
        f"chmod 600 {quote(keys)}"
    )
