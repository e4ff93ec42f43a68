"""Open authenticated SSH sessions to targets.

Private-key authentication is tried first, then password. Once connected the
session carries no idle timeout; job timeouts are enforced by the caller.
Optionally the session's interactive shell is switched to root.
"""

from __future__ import annotations

import io
import socket
from typing import Callable

import paramiko

from fleetcmd.config import Settings, settings
from fleetcmd.exceptions import AuthenticationFailed, TransportFailure
from fleetcmd.models.target import Target
from fleetcmd.services.elevation import ShellElevator
from fleetcmd.services.ssh_session import SshSession
from fleetcmd.utils.logging import get_logger

log = get_logger(__name__)

_KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


class _AuthRejected(Exception):
    """One credential was refused; the next one may still work."""


def load_private_key(key_text: str) -> paramiko.PKey:
    """Parse an OpenSSH/PEM private key held in memory."""
    for key_class in _KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(key_text))
        except (paramiko.SSHException, ValueError):
            continue
    raise paramiko.SSHException("unsupported or malformed private key")


class SshConnectionService:
    """Factory for ``SshSession`` objects with credential fallback."""

    def __init__(
        self,
        cfg: Settings | None = None,
        *,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
        elevator: ShellElevator | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._client_factory = client_factory
        self._elevator = elevator or ShellElevator(self._cfg)

    # ── connection primitives ─────────────────────────────────────────

    def _connect(self, target: Target, **auth_kwargs) -> SshSession:
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=target.host,
                port=target.port,
                username=target.user,
                timeout=self._cfg.ssh_connect_timeout_seconds,
                banner_timeout=self._cfg.ssh_connect_timeout_seconds,
                auth_timeout=self._cfg.ssh_auth_timeout_seconds,
                allow_agent=False,
                look_for_keys=False,
                **auth_kwargs,
            )
        except paramiko.AuthenticationException as exc:
            client.close()
            raise _AuthRejected(str(exc)) from exc
        except (paramiko.SSHException, socket.error) as exc:
            client.close()
            raise TransportFailure(target.host, target.port, str(exc)) from exc

        session = SshSession(client, target)
        session.set_timeout(None)
        return session

    def connect_with_private_key(self, target: Target) -> SshSession:
        if not target.private_key:
            raise AuthenticationFailed(target.host, target.port, "no private key")
        try:
            pkey = load_private_key(target.private_key)
        except paramiko.SSHException as exc:
            raise AuthenticationFailed(target.host, target.port, str(exc)) from exc
        try:
            session = self._connect(target, pkey=pkey)
        except _AuthRejected as exc:
            raise AuthenticationFailed(target.host, target.port, str(exc)) from exc
        log.info("ssh.connected", host=target.host, user=target.user, auth="key")
        return session

    def connect_with_password(self, target: Target) -> SshSession:
        if not target.password:
            raise AuthenticationFailed(target.host, target.port, "no password")
        try:
            session = self._connect(target, password=target.password)
        except _AuthRejected as exc:
            raise AuthenticationFailed(target.host, target.port, str(exc)) from exc
        log.info("ssh.connected", host=target.host, user=target.user, auth="password")
        return session

    # ── public ────────────────────────────────────────────────────────

    def open(self, target: Target, elevate: bool = False) -> SshSession:
        """Authenticate to *target*, optionally switching the shell to root."""
        log.info("ssh.connecting", host=target.host, port=target.port, user=target.user)
        session = self._authenticate(target)
        if elevate and not target.is_root:
            self._switch_to_root(session, target)
        return session

    def _authenticate(self, target: Target) -> SshSession:
        if not target.has_private_key and not target.has_password:
            log.error("ssh.no_credentials", host=target.host)
            raise AuthenticationFailed(target.host, target.port, "no credentials configured")

        errors: list[Exception] = []
        attempts: list[tuple[str, Callable[[Target], SshSession]]] = []
        if target.has_private_key:
            attempts.append(("key", self.connect_with_private_key))
        if target.has_password:
            attempts.append(("password", self.connect_with_password))

        for method, attempt in attempts:
            try:
                return attempt(target)
            except (AuthenticationFailed, TransportFailure) as exc:
                log.warning(
                    "ssh.auth_attempt_failed",
                    host=target.host,
                    method=method,
                    error=str(exc),
                )
                errors.append(exc)

        log.error(
            "ssh.all_auth_failed",
            host=target.host,
            port=target.port,
            has_private_key=target.has_private_key,
            has_password=target.has_password,
        )
        if all(isinstance(e, TransportFailure) for e in errors):
            raise errors[-1]
        raise AuthenticationFailed(
            target.host,
            target.port,
            "; ".join(getattr(e, "reason", "") or str(e) for e in errors),
        )

    def _switch_to_root(self, session: SshSession, target: Target) -> None:
        try:
            became_root = self._elevator.elevate(session.shell, target.password)
        except Exception as exc:
            log.warning("ssh.elevation_failed", host=target.host, error=str(exc))
            became_root = False
        if not became_root:
            log.warning("ssh.elevation_abandoned", host=target.host, user=target.user)
        else:
            log.info("ssh.elevated", host=target.host)
        session.set_timeout(None)


# Singleton
ssh_connection_service = SshConnectionService()
