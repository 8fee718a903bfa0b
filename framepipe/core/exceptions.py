"""
Exception taxonomy for the transformation engine.
"""


class FramePipeError(Exception):
    """Base class for all engine errors."""


class ConfigError(FramePipeError):
    """Raised when a mandatory configuration attribute is missing or invalid."""


class ValidationFailure(FramePipeError):
    """Raised by a validator check when a frame field fails a rule."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message
        super().__init__(f"[{rule_name}] {field_name}: {message}")


class ReadError(FramePipeError):
    """Raised by a reader when a single frame could not be read."""


class WriteError(FramePipeError):
    """Raised by a writer when a frame could not be written."""


class TaskError(FramePipeError):
    """Raised by a pre/post-process task when it could not complete."""


class JobError(FramePipeError):
    """Fatal job failure; aborts the remaining phase and forces teardown."""


class FrameLockedError(FramePipeError):
    """Raised when a frozen frame is mutated."""
