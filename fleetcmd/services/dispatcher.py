"""Deferred execution of command jobs on a worker pool.

A message carries only the job id; the handler reloads the job when it runs,
so whatever state the record has by then (canceled, disabled) is honoured.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, Protocol

from pydantic import BaseModel

from fleetcmd.models.jobs import CommandJob
from fleetcmd.utils.logging import get_logger

log = get_logger(__name__)


class ExecuteCommandMessage(BaseModel):
    command_id: str


class CommandRunner(Protocol):
    def find_by_id(self, job_id: str) -> Optional[CommandJob]: ...

    def execute_command(self, job: CommandJob, session=None) -> CommandJob: ...


class ExecuteCommandHandler:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def __call__(self, message: ExecuteCommandMessage) -> Optional[CommandJob]:
        log.info("dispatch.handle", command_id=message.command_id)
        job = self._runner.find_by_id(message.command_id)
        if job is None:
            log.warning("dispatch.unknown_command", command_id=message.command_id)
            return None
        return self._runner.execute_command(job)


class JobDispatcher:
    """Single-process message bus backed by a thread pool."""

    def __init__(
        self,
        handler: Callable[[ExecuteCommandMessage], Optional[CommandJob]],
        workers: int = 4,
    ) -> None:
        self._handler = handler
        self._workers = workers
        self._executor: Optional[ThreadPoolExecutor] = None

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._workers,
                thread_name_prefix="dispatch",
            )
        return self._executor

    def dispatch(self, message: ExecuteCommandMessage) -> Future:
        log.info("dispatch.queued", command_id=message.command_id)
        future = self._pool().submit(self._handler, message)
        future.add_done_callback(_log_failure)
        return future

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        log.error("dispatch.handler_failed", error=str(exc))
