"""File transfer lifecycle: pending -> uploading -> moving -> completed.

1. Upload the local file to a scratch path on the target (sftp, then scp)
2. ``mkdir -p`` the destination directory and ``mv`` the scratch file there
3. Confirm the destination exists

Any failure ends in ``failed`` with the cause in ``job.result``.
"""

from __future__ import annotations

import posixpath
import shlex
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence
from uuid import uuid4

from fleetcmd.config import Settings, settings
from fleetcmd.exceptions import FileNotExists, InvalidArgument, TransferStatusUpdateFailed
from fleetcmd.models.jobs import TransferJob, TransferStatus
from fleetcmd.models.target import Target
from fleetcmd.services.output_inspector import detect_error
from fleetcmd.services.repository import JobRepository, transfer_jobs
from fleetcmd.services.ssh_connection import SshConnectionService, ssh_connection_service
from fleetcmd.services.ssh_executor import SshCommandExecutor, ssh_executor
from fleetcmd.services.ssh_session import SshSession
from fleetcmd.services.uploads import UploadStrategy, default_strategies, upload_with_fallback
from fleetcmd.utils.logging import get_logger

log = get_logger(__name__)

SUCCESS_MESSAGE = "File transferred successfully"

_EXISTS = "FLEETCMD_DEST_EXISTS"
_MISSING = "FLEETCMD_DEST_MISSING"


def make_temp_path(temp_dir: str, local_path: str) -> str:
    """Unique scratch name, fixed at creation so a retry reuses it."""
    base = Path(local_path).name
    return posixpath.join(temp_dir, f"{base}_{uuid4().hex[:13]}")


class TransferService:
    def __init__(
        self,
        repo: JobRepository[TransferJob] | None = None,
        connections: SshConnectionService | None = None,
        executor: SshCommandExecutor | None = None,
        cfg: Settings | None = None,
        strategies: Sequence[UploadStrategy] | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._repo = repo if repo is not None else transfer_jobs
        self._connections = connections or ssh_connection_service
        self._executor = executor or ssh_executor
        self._strategies = (
            list(strategies)
            if strategies is not None
            else default_strategies(self._cfg, self._connections)
        )

    @property
    def repository(self) -> JobRepository[TransferJob]:
        return self._repo

    # ── creation ──────────────────────────────────────────────────────

    def create_transfer(
        self,
        target: Target,
        name: str,
        local_path: str,
        remote_path: str,
        use_sudo: bool = False,
        timeout: Optional[int] = None,
        tags: Optional[list[str]] = None,
    ) -> TransferJob:
        if not local_path:
            raise InvalidArgument("Local path must not be empty")
        if not remote_path:
            raise InvalidArgument("Remote path must not be empty")
        path = Path(local_path)
        if not path.is_file():
            raise FileNotExists(local_path)

        job = TransferJob(
            target=target,
            name=name or f"Upload {path.name}",
            local_path=str(path),
            remote_path=remote_path,
            temp_path=make_temp_path(self._cfg.transfer_temp_dir, local_path),
            file_size=path.stat().st_size,
            use_sudo=bool(use_sudo),
            timeout=timeout or self._cfg.default_job_timeout_seconds,
            tags=list(tags or []),
        )
        self._repo.save(job)
        log.info(
            "transfer.created",
            job_id=job.id,
            target=target.host,
            local_path=job.local_path,
            remote_path=remote_path,
            size=job.file_size,
        )
        return job

    def upload_file(
        self,
        target: Target,
        local_path: str,
        remote_path: str,
        use_sudo: bool = False,
        name: Optional[str] = None,
    ) -> TransferJob:
        """Create and immediately execute a transfer."""
        job = self.create_transfer(
            target,
            name or f"Upload {Path(local_path).name}",
            local_path,
            remote_path,
            use_sudo=use_sudo,
        )
        return self.execute_transfer(job)

    # ── execution ─────────────────────────────────────────────────────

    def execute_transfer(
        self,
        job: TransferJob,
        session: SshSession | None = None,
    ) -> TransferJob:
        if not job.enabled:
            log.warning("transfer.disabled", job_id=job.id)
            return job
        if job.status != TransferStatus.pending:
            log.warning("transfer.not_pending", job_id=job.id, status=job.status.value)
            return job

        if not Path(job.local_path).is_file():
            self._fail(job, FileNotExists(job.local_path), started=None)
            self._repo.save(job)
            return job

        job.status = TransferStatus.uploading
        job.started_at = datetime.now(timezone.utc)
        self._repo.save(job)
        started = time.perf_counter()

        owns_session = session is None
        try:
            if session is None:
                session = self._connections.open(job.target)

            log.info("transfer.uploading", job_id=job.id, temp_path=job.temp_path)
            used = upload_with_fallback(
                self._strategies,
                session,
                job.local_path,
                job.temp_path,
                timeout=job.timeout,
            )

            job.status = TransferStatus.moving
            self._repo.save(job)
            log.info(
                "transfer.moving",
                job_id=job.id,
                via=used,
                remote_path=job.remote_path,
                sudo=job.use_sudo,
            )
            self._move_into_place(job, session)
        except Exception as exc:
            self._fail(job, exc, started)
        else:
            job.transfer_time = time.perf_counter() - started
            job.status = TransferStatus.completed
            job.result = SUCCESS_MESSAGE
            job.completed_at = datetime.now(timezone.utc)
            log.info(
                "transfer.completed",
                job_id=job.id,
                duration=round(job.transfer_time, 3),
            )
        finally:
            self._repo.save(job)
            if owns_session and session is not None:
                session.close()
        return job

    def _run(self, session: SshSession, job: TransferJob, command: str) -> str:
        output = self._executor.execute(
            session,
            command,
            None,
            job.use_sudo,
            job.target,
            timeout=job.timeout if self._cfg.enforce_command_timeout else None,
        )
        problem = detect_error(output)
        if problem:
            log.warning("transfer.remote_output", job_id=job.id, line=problem)
        return output

    def _move_into_place(self, job: TransferJob, session: SshSession) -> None:
        dest = shlex.quote(job.remote_path)
        target_dir = posixpath.dirname(job.remote_path) or "/"
        self._run(session, job, f"mkdir -p {shlex.quote(target_dir)}")
        self._run(session, job, f"mv {shlex.quote(job.temp_path)} {dest}")
        check = self._run(
            session,
            job,
            f"test -f {dest} && echo {_EXISTS} || echo {_MISSING}",
        )
        if _EXISTS not in check:
            raise TransferStatusUpdateFailed(job.remote_path)

    def _fail(self, job: TransferJob, exc: Exception, started: Optional[float]) -> None:
        if started is not None:
            job.transfer_time = time.perf_counter() - started
        job.status = TransferStatus.failed
        job.result = f"Transfer failed: {exc}"
        job.completed_at = datetime.now(timezone.utc)
        log.error("transfer.failed", job_id=job.id, error=str(exc))

    # ── cancellation ──────────────────────────────────────────────────

    def cancel_transfer(self, job: TransferJob) -> TransferJob:
        if job.status == TransferStatus.pending:
            job.status = TransferStatus.canceled
            self._repo.save(job)
            log.info("transfer.canceled", job_id=job.id)
        else:
            log.info("transfer.cancel_ignored", job_id=job.id, status=job.status.value)
        return job

    # ── lookups ───────────────────────────────────────────────────────

    def find_by_id(self, job_id: str) -> Optional[TransferJob]:
        return self._repo.get(job_id)

    def find_pending_by_target(self, target: Target) -> list[TransferJob]:
        return self._repo.find_pending_by_target(target.id)

    def find_all_pending(self) -> list[TransferJob]:
        return self._repo.find_pending()

    def find_by_tags(self, tags: Iterable[str]) -> list[TransferJob]:
        return self._repo.find_by_tags(tags)

    def find_by_status(self, status: TransferStatus) -> list[TransferJob]:
        return self._repo.find_by_status(status)


# Singleton
transfer_service = TransferService()
