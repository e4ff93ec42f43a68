"""Remote host plus the credentials used to reach it."""

from __future__ import annotations

from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class Target(BaseModel):
    """A server reachable over SSH.

    Credentials never leave the process: they are hidden from ``repr`` and
    excluded from every ``model_dump``.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = ""
    host: str = Field(min_length=1)
    port: int = Field(default=22, ge=1, le=65535)
    user: str = Field(min_length=1)
    password: Optional[str] = Field(default=None, repr=False, exclude=True)
    private_key: Optional[str] = Field(default=None, repr=False, exclude=True)

    @property
    def is_root(self) -> bool:
        return self.user == "root"

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    @property
    def has_private_key(self) -> bool:
        return bool(self.private_key)


class TargetSummary(BaseModel):
    """Public view of a target for API listings."""

    id: str
    name: str
    host: str
    port: int
    user: str
    has_password: bool
    has_private_key: bool

    @classmethod
    def from_target(cls, target: Target) -> "TargetSummary":
        return cls(
            id=target.id,
            name=target.name,
            host=target.host,
            port=target.port,
            user=target.user,
            has_password=target.has_password,
            has_private_key=target.has_private_key,
        )
