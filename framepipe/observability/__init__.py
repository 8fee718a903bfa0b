"""
Observability: structured logging and Prometheus metrics.

Metrics live in ``framepipe.observability.metrics`` and are imported
explicitly where needed.
"""

from .logger import get_logger, log_operation, setup_logger

__all__ = ["get_logger", "log_operation", "setup_logger"]
