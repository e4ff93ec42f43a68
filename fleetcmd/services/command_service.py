"""Command job lifecycle: pending -> running -> completed | failed | timeout.

The job record is the diagnostic channel: transport and execution errors
end up in ``job.result`` with a terminal status, never as exceptions.
Success means the remote call returned; the output text is stored as-is and
is not run through the output inspector.
"""

from __future__ import annotations

import time
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Iterable, Optional

from fleetcmd.config import Settings, settings
from fleetcmd.exceptions import CommandTimeout, InvalidArgument
from fleetcmd.models.jobs import CommandJob, CommandStatus
from fleetcmd.models.target import Target
from fleetcmd.services.dispatcher import (
    ExecuteCommandHandler,
    ExecuteCommandMessage,
    JobDispatcher,
)
from fleetcmd.services.repository import JobRepository, command_jobs
from fleetcmd.services.ssh_connection import SshConnectionService, ssh_connection_service
from fleetcmd.services.ssh_executor import SshCommandExecutor, ssh_executor
from fleetcmd.services.ssh_session import SshSession
from fleetcmd.utils.logging import get_logger

log = get_logger(__name__)


class CommandService:
    def __init__(
        self,
        repo: JobRepository[CommandJob] | None = None,
        connections: SshConnectionService | None = None,
        executor: SshCommandExecutor | None = None,
        cfg: Settings | None = None,
        dispatcher: JobDispatcher | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._repo = repo if repo is not None else command_jobs
        self._connections = connections or ssh_connection_service
        self._executor = executor or ssh_executor
        self._dispatcher = dispatcher or JobDispatcher(
            ExecuteCommandHandler(self),
            workers=self._cfg.dispatcher_workers,
        )

    @property
    def repository(self) -> JobRepository[CommandJob]:
        return self._repo

    @property
    def dispatcher(self) -> JobDispatcher:
        return self._dispatcher

    # ── creation ──────────────────────────────────────────────────────

    def create_command(
        self,
        target: Target,
        name: str,
        command: str,
        working_directory: Optional[str] = None,
        use_sudo: bool = False,
        timeout: Optional[int] = None,
        tags: Optional[list[str]] = None,
    ) -> CommandJob:
        if not name or not name.strip():
            raise InvalidArgument("Command name must not be empty")
        if not command or not command.strip():
            raise InvalidArgument("Command text must not be empty")

        job = CommandJob(
            target=target,
            name=name,
            command=command,
            working_directory=working_directory or None,
            use_sudo=bool(use_sudo),
            timeout=timeout or self._cfg.default_job_timeout_seconds,
            tags=list(tags or []),
        )
        self._repo.save(job)
        log.info("command.created", job_id=job.id, target=target.host, name=name)
        return job

    # ── execution ─────────────────────────────────────────────────────

    def execute_command(
        self,
        job: CommandJob,
        session: SshSession | None = None,
    ) -> CommandJob:
        """Run *job* once. *session* is reused if given, otherwise opened and closed here."""
        if not job.enabled:
            log.warning("command.disabled", job_id=job.id)
            return job
        if job.status != CommandStatus.pending:
            log.warning("command.not_pending", job_id=job.id, status=job.status.value)
            return job

        job.status = CommandStatus.running
        job.executed_at = datetime.now(timezone.utc)
        self._repo.save(job)

        owns_session = session is None
        if session is None:
            try:
                session = self._connections.open(job.target, elevate=job.use_sudo)
            except Exception as exc:
                job.status = CommandStatus.failed
                job.result = f"SSH connection failed: {exc}"
                self._repo.save(job)
                log.error("command.connect_failed", job_id=job.id, error=str(exc))
                return job

        timeout = job.timeout if self._cfg.enforce_command_timeout else None
        started = time.perf_counter()
        try:
            output = self._executor.execute(
                session,
                job.command,
                job.working_directory,
                job.use_sudo,
                job.target,
                timeout=timeout,
            )
        except CommandTimeout as exc:
            job.status = CommandStatus.timeout
            job.result = str(exc)
            log.error("command.timeout", job_id=job.id, timeout=job.timeout)
        except Exception as exc:
            job.status = CommandStatus.failed
            job.result = f"Execution failed: {exc}"
            log.error("command.failed", job_id=job.id, error=str(exc))
        else:
            job.status = CommandStatus.completed
            job.result = output
        finally:
            job.execution_time = time.perf_counter() - started
            self._repo.save(job)
            if owns_session:
                session.close()

        log.info(
            "command.finished",
            job_id=job.id,
            status=job.status.value,
            duration=round(job.execution_time, 3),
        )
        return job

    def schedule_command(self, job: CommandJob) -> Future:
        """Queue *job* for execution on the dispatcher pool."""
        future = self._dispatcher.dispatch(ExecuteCommandMessage(command_id=job.id))
        log.info("command.scheduled", job_id=job.id)
        return future

    def execute_all_pending(self) -> list[CommandJob]:
        executed: list[CommandJob] = []
        for job in self.find_all_pending():
            executed.append(self.execute_command(job))
        ok = sum(1 for j in executed if j.status == CommandStatus.completed)
        log.info("command.pending_run", total=len(executed), completed=ok)
        return executed

    # ── cancellation ──────────────────────────────────────────────────

    def cancel_command(self, job: CommandJob) -> CommandJob:
        """Cancel a pending job; any other state is left untouched."""
        if job.status == CommandStatus.pending:
            job.status = CommandStatus.canceled
            self._repo.save(job)
            log.info("command.canceled", job_id=job.id)
        else:
            log.info("command.cancel_ignored", job_id=job.id, status=job.status.value)
        return job

    # ── lookups ───────────────────────────────────────────────────────

    def find_by_id(self, job_id: str) -> Optional[CommandJob]:
        return self._repo.get(job_id)

    def find_pending_by_target(self, target: Target) -> list[CommandJob]:
        return self._repo.find_pending_by_target(target.id)

    def find_all_pending(self) -> list[CommandJob]:
        return self._repo.find_pending()

    def find_by_tags(self, tags: Iterable[str]) -> list[CommandJob]:
        return self._repo.find_by_tags(tags)

    def find_by_status(self, status: CommandStatus) -> list[CommandJob]:
        return self._repo.find_by_status(status)

    def shutdown(self) -> None:
        self._dispatcher.shutdown(wait=False)


# Singleton
command_service = CommandService()
