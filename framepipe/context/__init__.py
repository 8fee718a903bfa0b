"""
Execution context model: job-wide, per-frame and persisted contexts.
"""

from .listener import ContextListener, LoggingListener
from .transaction_context import TransactionContext
from .transform_context import TransformContext

__all__ = [
    "ContextListener",
    "LoggingListener",
    "TransactionContext",
    "TransformContext",
]
