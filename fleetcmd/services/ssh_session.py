"""Thin wrapper around an authenticated paramiko client.

One ``SshSession`` belongs to one job at a time; none of its methods are safe
to call from two threads at once.
"""

from __future__ import annotations

import socket
import time
from typing import Optional

import paramiko

from fleetcmd.exceptions import CommandTimeout, TransportFailure
from fleetcmd.models.target import Target
from fleetcmd.utils.logging import get_logger

log = get_logger(__name__)

_RECV_CHUNK = 65535


class InteractiveShell:
    """Interactive shell channel used for prompt exchanges (root elevation)."""

    def __init__(self, channel: paramiko.Channel) -> None:
        self._chan = channel

    def write(self, data: str) -> None:
        self._chan.sendall(data.encode())

    def read(self) -> str:
        """Return whatever arrives before the channel timeout, or ``""``."""
        try:
            data = self._chan.recv(_RECV_CHUNK)
        except socket.timeout:
            return ""
        return data.decode("utf-8", errors="replace")

    def set_timeout(self, timeout: Optional[float]) -> None:
        self._chan.settimeout(timeout)

    def close(self) -> None:
        self._chan.close()


class SshSession:
    """An open SSH connection to a target."""

    def __init__(self, client: paramiko.SSHClient, target: Target) -> None:
        self._client = client
        self.target = target
        self._shell: Optional[InteractiveShell] = None
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._timeout: Optional[float] = None

    # ── timeouts ──────────────────────────────────────────────────────

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    def set_timeout(self, timeout: Optional[float]) -> None:
        """``None`` disables the idle timeout on the session's channels."""
        self._timeout = timeout
        if self._shell is not None:
            self._shell.set_timeout(timeout)

    # ── interactive shell ─────────────────────────────────────────────

    @property
    def shell(self) -> InteractiveShell:
        if self._shell is None:
            channel = self._client.invoke_shell()
            channel.settimeout(self._timeout)
            self._shell = InteractiveShell(channel)
        return self._shell

    # ── exec ──────────────────────────────────────────────────────────

    def exec(self, command: str, timeout: Optional[float] = None) -> str:
        """Run *command* and return combined stdout+stderr.

        With *timeout* the whole call is bounded by a wall-clock deadline and
        the channel is closed on expiry.
        """
        transport = self._client.get_transport()
        if transport is None or not transport.is_active():
            raise TransportFailure(self.target.host, self.target.port, "session closed")

        try:
            chan = transport.open_session()
        except paramiko.SSHException as exc:
            raise TransportFailure(self.target.host, self.target.port, str(exc)) from exc

        chunks: list[bytes] = []
        deadline = time.monotonic() + timeout if timeout else None
        try:
            chan.set_combine_stderr(True)
            chan.settimeout(timeout)
            chan.exec_command(command)
            while True:
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise CommandTimeout(command, timeout)
                    chan.settimeout(remaining)
                try:
                    data = chan.recv(_RECV_CHUNK)
                except socket.timeout as exc:
                    raise CommandTimeout(command, timeout or 0) from exc
                if not data:
                    break
                chunks.append(data)
        finally:
            chan.close()
        return b"".join(chunks).decode("utf-8", errors="replace")

    # ── sftp ──────────────────────────────────────────────────────────

    def _sftp_client(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            self._sftp = self._client.open_sftp()
        return self._sftp

    def sftp_put(self, local_path: str, remote_path: str) -> None:
        self._sftp_client().put(local_path, remote_path)

    def remote_exists(self, remote_path: str) -> bool:
        try:
            self._sftp_client().stat(remote_path)
        except FileNotFoundError:
            return False
        return True

    # ── lifecycle ─────────────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()

    def close(self) -> None:
        for closer in (self._sftp, self._shell, self._client):
            if closer is None:
                continue
            try:
                closer.close()
            except (OSError, paramiko.SSHException) as exc:
                log.debug("ssh.close_error", host=self.target.host, error=str(exc))
        self._sftp = None
        self._shell = None
        log.info("ssh.closed", host=self.target.host)

    def __enter__(self) -> "SshSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
