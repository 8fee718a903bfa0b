"""
Pydantic models shared across the engine.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class RunStatus(str, Enum):
    """Lifecycle states of a job run."""

    CONFIGURED = "CONFIGURED"
    OPENED = "OPENED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"
    CLOSED = "CLOSED"


class ColumnSpec(BaseModel):
    """
    Abstract column definition rendered into native DDL by a dialect.

    Attributes:
        name: Column name
        type: Abstract type tag (e.g. "STR", "S32"), matched case-insensitively
        length: Maximum length substituted into length-bearing native types
    """

    name: str = Field(..., min_length=1)
    type: str | None = None
    length: int = Field(0, ge=0)

    @field_validator("length", mode="before")
    @classmethod
    def default_length(cls, v):
        """Absent lengths render as 0."""
        return 0 if v is None else v

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {"name": "attribute_key", "type": "STR", "length": 128}
        }


class RunCounters(BaseModel):
    """Frame counters of one run."""

    read: int = 0
    rejected: int = 0
    written: int = 0
    failed: int = 0
    validation_failures: int = 0


class RunResult(BaseModel):
    """
    Final outcome of a job run.

    Per-frame validation messages are delivered to listeners; only the
    sticky error message is part of the result.
    """

    job_name: str
    status: RunStatus
    error_message: str | None = None
    counters: RunCounters = Field(default_factory=RunCounters)
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.COMPLETED

    class Config:
        json_schema_extra = {
            "example": {
                "job_name": "nightly-import",
                "status": "COMPLETED",
                "error_message": None,
                "counters": {"read": 120, "rejected": 3, "written": 117, "failed": 0},
            }
        }
