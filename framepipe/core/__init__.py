"""
Core data model: frames, symbols, templates, models and exceptions.
"""

from .exceptions import (
    ConfigError,
    FrameLockedError,
    FramePipeError,
    JobError,
    ReadError,
    TaskError,
    ValidationFailure,
    WriteError,
)
from .frame import FieldType, Frame
from .models import ColumnSpec, RunCounters, RunResult, RunStatus
from .symbols import SymbolTable
from .template import render

__all__ = [
    "ColumnSpec",
    "ConfigError",
    "FieldType",
    "Frame",
    "FrameLockedError",
    "FramePipeError",
    "JobError",
    "ReadError",
    "RunCounters",
    "RunResult",
    "RunStatus",
    "SymbolTable",
    "TaskError",
    "ValidationFailure",
    "WriteError",
    "render",
]
