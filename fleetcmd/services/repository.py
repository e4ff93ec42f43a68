"""Job persistence interface and the in-memory store behind it."""

from __future__ import annotations

import threading
from typing import Generic, Iterable, Optional, Protocol, TypeVar, Union

from fleetcmd.models.jobs import CommandJob, CommandStatus, TransferJob, TransferStatus

JobT = TypeVar("JobT", CommandJob, TransferJob)
Status = Union[CommandStatus, TransferStatus]


class JobRepository(Protocol[JobT]):
    """What the engine needs from the caller's persistence layer."""

    def save(self, job: JobT) -> None: ...

    def get(self, job_id: str) -> Optional[JobT]: ...

    def find_by_status(self, status: Status) -> list[JobT]: ...

    def find_by_tags(self, tags: Iterable[str]) -> list[JobT]: ...

    def find_pending(self) -> list[JobT]: ...

    def find_pending_by_target(self, target_id: str) -> list[JobT]: ...

    def list(self) -> list[JobT]: ...


class InMemoryJobRepository(Generic[JobT]):
    """Dict-backed store keyed by job id."""

    def __init__(self) -> None:
        self._jobs: dict[str, JobT] = {}
        self._lock = threading.Lock()

    def save(self, job: JobT) -> None:
        with self._lock:
            self._jobs[job.id] = job

    def get(self, job_id: str) -> Optional[JobT]:
        with self._lock:
            return self._jobs.get(job_id)

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def list(self) -> list[JobT]:
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def find_by_status(self, status: Status) -> list[JobT]:
        return [j for j in self.list() if j.status == status]

    def find_by_tags(self, tags: Iterable[str]) -> list[JobT]:
        """Jobs carrying any of *tags*, newest first."""
        wanted = set(tags)
        hits = [j for j in self.list() if wanted.intersection(j.tags)]
        return list(reversed(hits))

    def find_pending(self) -> list[JobT]:
        """Enabled jobs still waiting to run, oldest first."""
        return [j for j in self.list() if j.enabled and j.status.value == "pending"]

    def find_pending_by_target(self, target_id: str) -> list[JobT]:
        return [j for j in self.find_pending() if j.target.id == target_id]

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()


# Singletons
command_jobs: InMemoryJobRepository[CommandJob] = InMemoryJobRepository()
transfer_jobs: InMemoryJobRepository[TransferJob] = InMemoryJobRepository()
