"""Tests for the secure command channel (stream multiplexing, errors, timeouts)."""

from __future__ import annotations

import socket

import paramiko
import pytest

from zoneprov.errors import AuthenticationFailedError, CommandTimeoutError, TransportError
from zoneprov.services.ssh_channel import (
    ConnectionParams,
    SecureChannel,
    SSHSession,
    collect_channel,
)


class FakeChannel:
    """Replays scripted channel events, one per poll of exit_status_ready()."""

    def __init__(self, events: list[tuple]) -> None:
        self._events = list(events)
        self._stdout = b""
        self._stderr = b""
        self._exit: int | None = None
        self.eof_received = False
        self.closed = False
        self.pty_requested = False
        self.command: str | None = None
        self.stdin = b""
        self.write_shut = False

    def _advance(self) -> None:
        if not self._events:
            return
        kind, *payload = self._events.pop(0)
        if kind == "out":
            self._stdout += payload[0]
        elif kind == "err":
            self._stderr += payload[0]
        elif kind == "exit":
            self._exit = payload[0]
        elif kind == "eof":
            self.eof_received = True

    def exit_status_ready(self) -> bool:
        self._advance()
        return self._exit is not None

    def recv_ready(self) -> bool:
        return bool(self._stdout)

    def recv_stderr_ready(self) -> bool:
        return bool(self._stderr)

    def recv(self, n: int) -> bytes:
        data, self._stdout = self._stdout[:n], self._stdout[n:]
        return data

    def recv_stderr(self, n: int) -> bytes:
        data, self._stderr = self._stderr[:n], self._stderr[n:]
        return data

    def recv_exit_status(self) -> int:
        return -1 if self._exit is None else self._exit

    def get_pty(self) -> None:
        self.pty_requested = True

    def exec_command(self, command: str) -> None:
        self.command = command

    def sendall(self, data: bytes) -> None:
        self.stdin += data

    def shutdown_write(self) -> None:
        self.write_shut = True

    def close(self) -> None:
        self.closed = True


class EndlessOutputChannel(FakeChannel):
    """A command that prints forever and never exits, like ``yes``."""

    def __init__(self) -> None:
        super().__init__([])

    def recv_ready(self) -> bool:
        return True

    def recv(self, n: int) -> bytes:
        return b"y\n"


def _collect(events, **kwargs):
    kwargs.setdefault("timeout", 5)
    kwargs.setdefault("poll_interval", 0)
    return collect_channel(FakeChannel(events), **kwargs)


# ---------------------------------------------------------------------------
# collect_channel
# ---------------------------------------------------------------------------


class TestCollectChannel:
    def test_stdout_only(self):
        out, err, rc = _collect([("out", b"hello\r\n"), ("exit", 0), ("eof",)])
        assert out == "hello"
        assert err is None
        assert rc == 0

    def test_stderr_only_leaves_stdout_absent(self):
        out, err, rc = _collect([("err", b"boom\n"), ("exit", 3), ("eof",)])
        assert out is None
        assert err == "boom"
        assert rc == 3

    def test_interleaved_chunks_are_kept_apart(self):
        out, err, rc = _collect([
            ("out", b"a"),
            ("err", b"x"),
            ("out", b"b\n"),
            ("err", b"y\n"),
            ("exit", 0),
            ("eof",),
        ])
        assert out == "ab"
        assert err == "xy"

    def test_exit_code_survives_large_output(self):
        events = [("out", b"z" * 1000) for _ in range(100)]
        events += [("exit", 3), ("eof",)]
        out, err, rc = _collect(events)
        assert rc == 3
        assert len(out) == 100_000
        assert err is None

    def test_waits_for_eof_after_exit_status(self):
        out, _, rc = _collect([("exit", 0), ("out", b"late\n"), ("eof",)])
        assert out == "late"
        assert rc == 0

    def test_bare_newline_is_empty_not_absent(self):
        out, err, _ = _collect([("out", b"\n"), ("exit", 0), ("eof",)])
        assert out == ""
        assert err is None

    def test_only_one_trailing_newline_stripped(self):
        out, _, _ = _collect([("out", b"line1\nline2\n\n"), ("exit", 0), ("eof",)])
        assert out == "line1\nline2\n"

    def test_timeout_when_exit_status_never_arrives(self):
        with pytest.raises(CommandTimeoutError):
            _collect([("out", b"partial")], timeout=0.05, poll_interval=0.01)

    def test_timeout_while_output_keeps_arriving(self):
        with pytest.raises(CommandTimeoutError):
            collect_channel(EndlessOutputChannel(), timeout=0.1, poll_interval=0.01)


# ---------------------------------------------------------------------------
# SecureChannel with a fake paramiko client
# ---------------------------------------------------------------------------


class FakeTransport:
    def __init__(self, channels: list[FakeChannel]) -> None:
        self._channels = channels
        self.opened: list[FakeChannel] = []

    def open_session(self, timeout=None):
        chan = self._channels.pop(0)
        self.opened.append(chan)
        return chan

    def is_active(self) -> bool:
        return True


class FakeClient:
    connect_error: Exception | None = None

    def __init__(self, channels: list[FakeChannel]) -> None:
        self.transport = FakeTransport(channels)
        self.connect_kwargs: dict = {}
        self.closed = False

    def set_missing_host_key_policy(self, policy) -> None:
        pass

    def connect(self, **kwargs) -> None:
        self.connect_kwargs = kwargs
        if self.connect_error is not None:
            raise self.connect_error

    def get_transport(self):
        return None if self.closed else self.transport

    def close(self) -> None:
        self.closed = True


PARAMS = ConnectionParams(host="gz.test.local", username="root", password="pw")


def _channel_with(client: FakeClient, **kwargs) -> SecureChannel:
    return SecureChannel(PARAMS, client_factory=lambda: client, **kwargs)


def test_execute_requests_pty_and_returns_result():
    chan = FakeChannel([("out", b"5.11\r\n"), ("exit", 0), ("eof",)])
    client = FakeClient([chan])
    sc = _channel_with(client)

    result = sc.execute("uname -r", timeout=5)

    assert result.command == "uname -r"
    assert result.stdout == "5.11"
    assert result.stderr is None
    assert result.exit_code == 0
    assert chan.pty_requested
    assert chan.command == "uname -r"
    assert chan.closed
    assert client.connect_kwargs["password"] == "pw"
    assert client.connect_kwargs["hostname"] == "gz.test.local"


def test_pty_can_be_disabled():
    chan = FakeChannel([("exit", 0), ("eof",)])
    sc = _channel_with(FakeClient([chan]), request_pty=False)
    sc.execute("true", timeout=5)
    assert not chan.pty_requested


def test_stdin_is_sent_then_closed_without_pty():
    chan = FakeChannel([("out", b"$1$abcdefgh$hash\n"), ("exit", 0), ("eof",)])
    sc = _channel_with(FakeClient([chan]))

    result = sc.execute("read-password", timeout=5, stdin=b"hunter2hunter2\n")

    assert result.stdout == "$1$abcdefgh$hash"
    assert chan.stdin == b"hunter2hunter2\n"
    assert chan.write_shut
    assert not chan.pty_requested
    assert "hunter2" not in chan.command


def test_one_channel_per_command():
    chans = [
        FakeChannel([("out", b"one\n"), ("exit", 0), ("eof",)]),
        FakeChannel([("err", b"two\n"), ("exit", 1), ("eof",)]),
    ]
    client = FakeClient(list(chans))
    sc = _channel_with(client)

    first = sc.execute("first", timeout=5)
    second = sc.execute("second", timeout=5)

    assert client.transport.opened == chans
    assert (first.stdout, first.exit_code) == ("one", 0)
    assert (second.stderr, second.exit_code) == ("two", 1)


def test_nonzero_exit_is_not_an_error():
    chan = FakeChannel([("exit", 42), ("eof",)])
    result = _channel_with(FakeClient([chan])).execute("false", timeout=5)
    assert result.exit_code == 42
    assert not result.ok


def test_authentication_failure():
    client = FakeClient([])
    client.connect_error = paramiko.AuthenticationException("denied")
    with pytest.raises(AuthenticationFailedError):
        _channel_with(client).open()
    assert client.closed


def test_connection_failure_is_transport_error():
    client = FakeClient([])
    client.connect_error = socket.error("connection refused")
    with pytest.raises(TransportError):
        _channel_with(client).execute("true", timeout=5)


def test_timeout_closes_channel():
    chan = FakeChannel([])
    sc = _channel_with(FakeClient([chan]))
    with pytest.raises(CommandTimeoutError):
        sc.execute("sleep 1000", timeout=0.05)
    assert chan.closed


def test_close_releases_client():
    client = FakeClient([FakeChannel([("exit", 0), ("eof",)])])
    sc = _channel_with(client)
    sc.execute("true", timeout=5)
    assert sc.is_open
    sc.close()
    assert client.closed
    assert not sc.is_open


@pytest.mark.asyncio
async def test_ssh_session_runs_through_executor():
    session = SSHSession(PARAMS)
    client = FakeClient([FakeChannel([("out", b"connected\n"), ("exit", 0), ("eof",)])])
    session._channel = _channel_with(client)

    result = await session.execute("echo connected", timeout=5)
    assert result.stdout == "connected"
    assert session.is_connected

    await session.close()
    assert client.closed
    assert not session.is_connected
