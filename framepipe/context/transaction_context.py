"""
Per-frame execution context.
"""

from typing import Any

from framepipe.core.frame import Frame

from .transform_context import TransformContext


class TransactionContext:
    """
    State of one frame's pass through the pipeline.

    Created when the frame is read and discarded once it has been written
    or dropped. Never shared across frames.
    """

    def __init__(self, parent: TransformContext, source_frame: Frame, row: int = 0):
        self.parent = parent
        self.source_frame = source_frame
        self.target_frame: Frame | None = None
        self.row = row
        self._failures: list[str] = []

    @property
    def symbols(self):
        return self.parent.symbols

    def get_source_frame(self) -> Frame:
        return self.source_frame

    def get_target_frame(self) -> Frame | None:
        return self.target_frame

    def add_validation_failure(self, message: str) -> None:
        self._failures.append(message)

    @property
    def validation_failures(self) -> list[str]:
        return list(self._failures)

    def fire_validation_failed(self, source: Any, message: str) -> None:
        """Record the failure on this frame and notify the job's listeners."""
        self.add_validation_failure(message)
        self.parent.fire_validation_failed(source, message)

    def set_error(self, message: str) -> None:
        self.parent.set_error(message)

    def is_in_error(self) -> bool:
        return self.parent.is_in_error()

    def __repr__(self) -> str:
        return f"TransactionContext(row={self.row}, failures={len(self._failures)})"
