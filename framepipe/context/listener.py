"""
Context listeners receive push notifications about a job run.

Listeners never influence control flow: they return nothing and the
engine ignores anything they raise beyond logging it.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .transaction_context import TransactionContext
    from .transform_context import TransformContext


class ContextListener:
    """Base listener; override only the events of interest."""

    def on_start(self, context: "TransformContext") -> None:
        pass

    def on_end(self, context: "TransformContext") -> None:
        pass

    def on_read(self, txn: "TransactionContext") -> None:
        pass

    def on_filtered(self, txn: "TransactionContext", source: Any) -> None:
        pass

    def on_validation_failed(self, context: "TransformContext", source: Any, message: str) -> None:
        pass

    def on_write(self, txn: "TransactionContext", source: Any) -> None:
        pass

    def on_error(self, context: "TransformContext", source: Any, message: str) -> None:
        pass


class LoggingListener(ContextListener):
    """Writes validation failures and stage errors to the job log."""

    def __init__(self, logger=None):
        from framepipe.observability.logger import get_logger

        self.logger = logger or get_logger(__name__)

    def on_validation_failed(self, context, source, message):
        self.logger.warning(
            f"Validation failed: {message}",
            extra={"job_name": context.name, "component": type(source).__name__},
        )

    def on_error(self, context, source, message):
        self.logger.error(
            f"Stage error: {message}",
            extra={"job_name": context.name, "component": type(source).__name__},
        )
