"""Secure command channel to a remote host.

Runs one command per paramiko session channel and collects stdout, stderr
and the exit-status request into a single ``CommandResult``.  The blocking
paramiko work runs inside a single-thread executor so the event loop is
never blocked, and a lock keeps exactly one command in flight per session.
"""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

import paramiko
from pydantic import BaseModel

from zoneprov.errors import (
    AuthenticationFailedError,
    CommandTimeoutError,
    TransportError,
)
from zoneprov.models.commands import CommandResult
from zoneprov.utils.logging import get_logger

log = get_logger(__name__)

RECV_BUFFER = 32768
POLL_INTERVAL = 0.05


class ConnectionParams(BaseModel):
    """Address and credentials for one SSH session."""

    host: str
    port: int = 22
    username: str = "root"
    password: Optional[str] = None
    key_path: Optional[str] = None
    connect_timeout: float = 15.0

    def __str__(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"


# ── stream collection ─────────────────────────────────────────────────────

def _chomp(data: bytes) -> str:
    text = data.decode("utf-8", errors="replace")
    if text.endswith("\r\n"):
        return text[:-2]
    if text.endswith("\n") or text.endswith("\r"):
        return text[:-1]
    return text


def collect_channel(
    channel: Any,
    *,
    timeout: float,
    poll_interval: float = POLL_INTERVAL,
) -> tuple[Optional[str], Optional[str], int]:
    """Drain stdout and stderr of an exec'd channel until it completes.

    The channel is complete once the exit-status request has arrived, the
    remote side sent EOF (or closed), and both receive buffers are empty.
    Raises ``CommandTimeoutError`` if that does not happen within *timeout*
    seconds.
    """
    stdout: list[bytes] = []
    stderr: list[bytes] = []
    deadline = time.monotonic() + timeout

    while True:
        if time.monotonic() >= deadline:
            raise CommandTimeoutError(
                f"command did not complete within {timeout:g}s",
            )
        # Sampled before draining: once EOF is seen every byte is buffered.
        finished = channel.exit_status_ready() and (
            channel.eof_received or channel.closed
        )
        drained = False
        if channel.recv_ready():
            chunk = channel.recv(RECV_BUFFER)
            if chunk:
                stdout.append(chunk)
                drained = True
        if channel.recv_stderr_ready():
            chunk = channel.recv_stderr(RECV_BUFFER)
            if chunk:
                stderr.append(chunk)
                drained = True
        if drained:
            continue
        if finished:
            break
        time.sleep(poll_interval)

    exit_code = channel.recv_exit_status()
    return (
        _chomp(b"".join(stdout)) if stdout else None,
        _chomp(b"".join(stderr)) if stderr else None,
        exit_code,
    )


# ── synchronous channel ───────────────────────────────────────────────────

class SecureChannel:
    """A paramiko SSH client bound to one (host, user, credential) triple."""

    def __init__(
        self,
        params: ConnectionParams,
        *,
        request_pty: bool = True,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
    ) -> None:
        self.params = params
        self.request_pty = request_pty
        self._client_factory = client_factory
        self._client: Optional[paramiko.SSHClient] = None

    def open(self) -> None:
        if self.is_open:
            return
        p = self.params
        log.info("ssh.connecting", host=p.host, port=p.port, user=p.username)
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        connect_kwargs: dict = dict(
            hostname=p.host,
            port=p.port,
            username=p.username,
            timeout=p.connect_timeout,
            banner_timeout=p.connect_timeout,
            auth_timeout=p.connect_timeout,
            allow_agent=False,
            look_for_keys=False,
        )
        if p.password:
            connect_kwargs["password"] = p.password
        if p.key_path:
            connect_kwargs["key_filename"] = p.key_path
        try:
            client.connect(**connect_kwargs)
        except paramiko.AuthenticationException as exc:
            client.close()
            raise AuthenticationFailedError(
                f"authentication to {p} failed: {exc}",
            ) from exc
        except (paramiko.SSHException, OSError, EOFError) as exc:
            client.close()
            raise TransportError(f"could not connect to {p}: {exc}") from exc
        self._client = client
        log.info("ssh.connected", host=p.host)

    def execute(
        self,
        command: str,
        timeout: float,
        stdin: Optional[bytes] = None,
    ) -> CommandResult:
        """Run *command* on its own channel and wait for its exit status.

        *stdin* is written to the command and followed by EOF.  No pty is
        requested in that case, since a pty would echo the input to stdout.
        """
        if not self.is_open:
            self.open()
        transport = self._client.get_transport()
        started = time.monotonic()
        try:
            channel = transport.open_session(timeout=timeout)
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise TransportError(
                f"could not open channel on {self.params}: {exc}",
            ) from exc
        try:
            if self.request_pty and stdin is None:
                channel.get_pty()
            channel.exec_command(command)
            if stdin is not None:
                channel.sendall(stdin)
                channel.shutdown_write()
            stdout, stderr, exit_code = collect_channel(channel, timeout=timeout)
        except CommandTimeoutError:
            log.warning("ssh.command_timeout", host=self.params.host, timeout=timeout)
            raise
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise TransportError(
                f"channel to {self.params} failed: {exc}",
            ) from exc
        finally:
            channel.close()
        return CommandResult(
            command=command,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            elapsed_time=time.monotonic() - started,
        )

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            finally:
                self._client = None
                log.info("ssh.closed", host=self.params.host)

    @property
    def is_open(self) -> bool:
        if self._client is None:
            return False
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()


# ── async session ─────────────────────────────────────────────────────────

class SSHSession:
    """Async front for a ``SecureChannel`` with one command in flight."""

    def __init__(self, params: ConnectionParams, *, request_pty: bool = True) -> None:
        self.params = params
        self._channel = SecureChannel(params, request_pty=request_pty)
        self._lock = asyncio.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    async def _run(self, fn, *args):
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="ssh",
            )
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    async def execute(
        self,
        command: str,
        *,
        timeout: float,
        stdin: Optional[bytes] = None,
    ) -> CommandResult:
        async with self._lock:
            return await self._run(self._channel.execute, command, timeout, stdin)

    async def close(self) -> None:
        async with self._lock:
            if self._executor is None:
                return
            await self._run(self._channel.close)
            self._executor.shutdown(wait=False)
            self._executor = None

    @property
    def is_connected(self) -> bool:
        return self._channel.is_open


def open_session(params: ConnectionParams, *, request_pty: bool = True) -> SSHSession:
    return SSHSession(params, request_pty=request_pty)


# Resolved at call time by the services so tests can swap in a fake host.
session_factory: Callable[..., SSHSession] = open_session
