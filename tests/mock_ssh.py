"""Fake SSH plumbing for testing without a reachable host.

``FakeHost`` holds a tiny remote filesystem shared by every ``FakeSession``
opened against it, so the upload -> mv -> test -f sequence behaves like the
real thing.
"""

from __future__ import annotations

import re
import shlex
from pathlib import Path
from typing import Optional

import paramiko

from fleetcmd.exceptions import CommandTimeout
from fleetcmd.models.target import Target

_MV = re.compile(r"\bmv (\S+) (\S+)")
_TEST_F = re.compile(r"test -f (\S+) && echo (\S+) \|\| echo (\S+)")
_ECHO = re.compile(r"(?:^|&& )echo (.+)$")


# ── Remote side ──────────────────────────────────────────────────────────


class FakeHost:
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.responses: dict[str, str] = {}
        self.commands: list[str] = []
        self.ignore_mv = False

    def add_response(self, command: str, output: str) -> None:
        """Add or override a canned response (matched by substring)."""
        self.responses[command] = output

    def run(self, command: str) -> str:
        self.commands.append(command)
        for key, val in self.responses.items():
            if key in command:
                return val

        mv = _MV.search(command)
        if mv and not self.ignore_mv:
            src, dst = (shlex.split(p)[0] for p in mv.groups())
            if src in self.files:
                self.files[dst] = self.files.pop(src)
                return ""
            return f"mv: cannot stat '{src}': No such file or directory\n"

        test = _TEST_F.search(command)
        if test:
            path, yes, no = (shlex.split(p)[0] for p in test.groups())
            return (yes if path in self.files else no) + "\n"

        echo = _ECHO.search(command)
        if echo:
            return echo.group(1) + "\n"
        return ""


class FakeSession:
    """Drop-in replacement for SshSession."""

    def __init__(self, target: Target, host: Optional[FakeHost] = None) -> None:
        self.target = target
        self.host = host or FakeHost()
        self.closed = False
        self.timeout: Optional[float] = None
        self.exec_timeouts: list[Optional[float]] = []
        self.exec_error: Optional[Exception] = None
        self.put_error: Optional[Exception] = None
        self.drop_after_put = False

    @property
    def commands(self) -> list[str]:
        return self.host.commands

    def set_timeout(self, timeout: Optional[float]) -> None:
        self.timeout = timeout

    def exec(self, command: str, timeout: Optional[float] = None) -> str:
        self.exec_timeouts.append(timeout)
        if self.exec_error is not None:
            self.host.commands.append(command)
            raise self.exec_error
        return self.host.run(command)

    def sftp_put(self, local_path: str, remote_path: str) -> None:
        if self.put_error is not None:
            raise self.put_error
        if not self.drop_after_put:
            self.host.files[remote_path] = Path(local_path).read_bytes()

    def remote_exists(self, remote_path: str) -> bool:
        return remote_path in self.host.files

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class StallingSession(FakeSession):
    """Every exec runs past its deadline, reported the way SshSession does."""

    def exec(self, command: str, timeout: Optional[float] = None) -> str:
        self.exec_timeouts.append(timeout)
        self.host.commands.append(command)
        raise CommandTimeout(command, timeout or 0)


class FakeConnections:
    """Stands in for SshConnectionService."""

    def __init__(self, host: Optional[FakeHost] = None) -> None:
        self.host = host or FakeHost()
        self.opened: list[tuple[Target, bool]] = []
        self.sessions: list[FakeSession] = []
        self.error: Optional[Exception] = None

    def open(self, target: Target, elevate: bool = False) -> FakeSession:
        self.opened.append((target, elevate))
        if self.error is not None:
            raise self.error
        session = FakeSession(target, self.host)
        self.sessions.append(session)
        return session


# ── Interactive shell + clock ────────────────────────────────────────────


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeShell:
    """Scripted shell: each ``read`` returns the next chunk, then ``""``."""

    def __init__(self, chunks: Optional[list[str]] = None, after_write: Optional[dict[str, list[str]]] = None) -> None:
        self.chunks = list(chunks or [])
        self.after_write = dict(after_write or {})
        self.writes: list[str] = []
        self.timeouts: list[Optional[float]] = []

    def write(self, data: str) -> None:
        self.writes.append(data)
        self.chunks.extend(self.after_write.pop(data, []))

    def read(self) -> str:
        return self.chunks.pop(0) if self.chunks else ""

    def set_timeout(self, timeout: Optional[float]) -> None:
        self.timeouts.append(timeout)


# ── paramiko client double ───────────────────────────────────────────────


class FakeSSHClient:
    """Accepts or rejects ``connect`` according to the configured credentials."""

    def __init__(
        self,
        *,
        password: Optional[str] = None,
        accept_keys: bool = False,
        unreachable: bool = False,
        log: Optional[list[dict]] = None,
    ) -> None:
        self._password = password
        self._accept_keys = accept_keys
        self._unreachable = unreachable
        self.log = log if log is not None else []
        self.closed = False
        self.policy = None

    def set_missing_host_key_policy(self, policy) -> None:
        self.policy = policy

    def connect(self, **kwargs) -> None:
        self.log.append(kwargs)
        if self._unreachable:
            raise OSError("Connection refused")
        if "pkey" in kwargs:
            if not self._accept_keys:
                raise paramiko.AuthenticationException("key rejected")
            return
        if kwargs.get("password") != self._password or self._password is None:
            raise paramiko.AuthenticationException("Authentication failed.")

    def get_transport(self):
        return None

    def close(self) -> None:
        self.closed = True


def client_factory(**kwargs):
    """Build a ``client_factory`` that records every connect attempt."""
    attempts: list[dict] = []

    def factory() -> FakeSSHClient:
        return FakeSSHClient(log=attempts, **kwargs)

    factory.attempts = attempts  # type: ignore[attr-defined]
    return factory
