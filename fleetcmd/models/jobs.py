"""Command and file transfer job records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from fleetcmd.models.target import Target


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommandStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"
    timeout = "timeout"
    canceled = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in _COMMAND_TERMINAL

    @property
    def label(self) -> str:
        return self.value.capitalize()


_COMMAND_TERMINAL = frozenset(
    {
        CommandStatus.completed,
        CommandStatus.failed,
        CommandStatus.timeout,
        CommandStatus.canceled,
    },
)


class TransferStatus(str, Enum):
    pending = "pending"
    uploading = "uploading"
    moving = "moving"
    completed = "completed"
    failed = "failed"
    canceled = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in _TRANSFER_TERMINAL

    @property
    def label(self) -> str:
        return self.value.capitalize()


_TRANSFER_TERMINAL = frozenset(
    {TransferStatus.completed, TransferStatus.failed, TransferStatus.canceled},
)


class CommandJob(BaseModel):
    """A shell command to run once on one target."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    target: Target
    name: str
    command: str
    working_directory: Optional[str] = None
    use_sudo: bool = False
    enabled: bool = True
    timeout: int = Field(default=300, ge=1)
    tags: list[str] = Field(default_factory=list)

    status: CommandStatus = CommandStatus.pending
    result: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    executed_at: Optional[datetime] = None
    execution_time: Optional[float] = Field(
        default=None,
        description="Wall-clock seconds spent in the remote call",
    )


class TransferJob(BaseModel):
    """A local file to be placed at a remote path via a scratch upload."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    target: Target
    name: str
    local_path: str
    remote_path: str
    temp_path: str
    file_size: int = 0
    use_sudo: bool = False
    enabled: bool = True
    timeout: int = Field(default=300, ge=1)
    tags: list[str] = Field(default_factory=list)

    status: TransferStatus = TransferStatus.pending
    result: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    transfer_time: Optional[float] = None
