"""API request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    version: str


class CommandCreateRequest(BaseModel):
    target_id: str
    name: str
    command: str
    working_directory: Optional[str] = None
    use_sudo: bool = False
    timeout: Optional[int] = Field(default=None, ge=1)
    tags: list[str] = Field(default_factory=list)


class TransferCreateRequest(BaseModel):
    target_id: str
    name: str = ""
    local_path: str
    remote_path: str
    use_sudo: bool = False
    timeout: Optional[int] = Field(default=None, ge=1)
    tags: list[str] = Field(default_factory=list)


class ScheduleResponse(BaseModel):
    command_id: str
    queued: bool = True


class TerminalExecuteRequest(BaseModel):
    target_id: str
    command: str
    working_directory: Optional[str] = None


class TerminalExecuteResponse(BaseModel):
    success: bool
    command_id: Optional[str] = None
    status: Optional[str] = None
    result: str = ""
    execution_time: Optional[float] = None
    has_error: bool = False
    error: Optional[str] = None


class TerminalHistoryEntry(BaseModel):
    id: str
    command: str
    result: str = ""
    status: str
    executed_at: Optional[datetime] = None
    execution_time: Optional[float] = None
    working_directory: Optional[str] = None
