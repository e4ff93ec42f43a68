"""Upload transports for the scratch phase of a file transfer.

Strategies are tried in order until one succeeds. Each one verifies that the
temp file really exists on the target before reporting success.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from typing import Callable, Optional, Protocol, Sequence

import paramiko

from fleetcmd.config import Settings, settings
from fleetcmd.exceptions import FleetCmdError, TransferExecutionFailed
from fleetcmd.models.target import Target
from fleetcmd.services.ssh_connection import SshConnectionService, ssh_connection_service
from fleetcmd.services.ssh_session import SshSession
from fleetcmd.utils.logging import get_logger

log = get_logger(__name__)


class UploadStrategy(Protocol):
    name: str

    def eligible(self, target: Target) -> bool: ...

    def upload(
        self,
        session: SshSession,
        local_path: str,
        remote_path: str,
        timeout: Optional[float] = None,
    ) -> None: ...


def is_fallback_eligible(target: Target) -> bool:
    """scp via sshpass can only carry a password, never a key."""
    return target.has_password and not target.has_private_key


class SftpUpload:
    name = "sftp"

    def eligible(self, target: Target) -> bool:
        return True

    def upload(
        self,
        session: SshSession,
        local_path: str,
        remote_path: str,
        timeout: Optional[float] = None,
    ) -> None:
        session.sftp_put(local_path, remote_path)
        if not session.remote_exists(remote_path):
            raise TransferExecutionFailed(f"{remote_path} missing after sftp put")


class ScpPasswordUpload:
    """``sshpass -e scp`` in a subprocess; the password travels in ``SSHPASS``."""

    name = "scp"

    def __init__(
        self,
        cfg: Settings | None = None,
        connections: SshConnectionService | None = None,
        *,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        which: Callable[[str], Optional[str]] = shutil.which,
    ) -> None:
        self._cfg = cfg or settings
        self._connections = connections or ssh_connection_service
        self._run = run
        self._which = which

    def eligible(self, target: Target) -> bool:
        return is_fallback_eligible(target)

    def build_command(self, target: Target, local_path: str, remote_path: str) -> list[str]:
        host = f"[{target.host}]" if ":" in target.host else target.host
        return [
            self._cfg.sshpass_binary,
            "-e",
            self._cfg.scp_binary,
            "-P",
            str(target.port),
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "UserKnownHostsFile=/dev/null",
            local_path,
            f"{target.user}@{host}:{remote_path}",
        ]

    def upload(
        self,
        session: SshSession,
        local_path: str,
        remote_path: str,
        timeout: Optional[float] = None,
    ) -> None:
        target = session.target
        if self._which(self._cfg.sshpass_binary) is None:
            raise TransferExecutionFailed(f"{self._cfg.sshpass_binary} is not installed")

        env = os.environ.copy()
        env["SSHPASS"] = target.password or ""
        proc = self._run(
            self.build_command(target, local_path, remote_path),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
        if proc.returncode != 0:
            raise TransferExecutionFailed(
                f"scp exited with {proc.returncode}: {(proc.stderr or '').strip()}",
            )

        # verify on a fresh session, not the one the failed strategy used
        with self._connections.open(target) as fresh:
            if not fresh.remote_exists(remote_path):
                raise TransferExecutionFailed(f"{remote_path} missing after scp")


def default_strategies(
    cfg: Settings | None = None,
    connections: SshConnectionService | None = None,
) -> list[UploadStrategy]:
    return [SftpUpload(), ScpPasswordUpload(cfg, connections)]


def upload_with_fallback(
    strategies: Sequence[UploadStrategy],
    session: SshSession,
    local_path: str,
    remote_path: str,
    timeout: Optional[float] = None,
) -> str:
    """Return the name of the strategy that succeeded."""
    target = session.target
    reasons: list[str] = []
    for strategy in strategies:
        if not strategy.eligible(target):
            reasons.append(f"{strategy.name}: not eligible for {target.host}")
            log.info("upload.skipped", strategy=strategy.name, host=target.host)
            continue
        try:
            strategy.upload(session, local_path, remote_path, timeout)
        except (
            FleetCmdError,
            OSError,
            paramiko.SSHException,
            subprocess.SubprocessError,
        ) as exc:
            reasons.append(f"{strategy.name}: {exc}")
            log.warning(
                "upload.strategy_failed",
                strategy=strategy.name,
                host=target.host,
                error=str(exc),
            )
            continue
        log.info("upload.done", strategy=strategy.name, host=target.host, path=remote_path)
        return strategy.name

    raise TransferExecutionFailed("; ".join(reasons) or "no upload strategy configured")
