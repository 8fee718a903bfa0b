"""
Job-wide execution context.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

from framepipe.core.models import RunCounters
from framepipe.core.symbols import SymbolTable
from framepipe.observability.logger import get_logger

from .listener import ContextListener

logger = get_logger(__name__)

JOB_NAME_SYM = "job_name"
JOB_DIR_SYM = "job_dir"
WORK_DIR_SYM = "work_dir"
RUN_START_SYM = "run_start"


class TransformContext:
    """
    Shared state of one job run.

    Holds the symbol table used for template substitution, an untyped
    attribute store, the sticky error flag, listeners and run counters.
    Exactly one instance exists per run and every stage of every frame
    sees the same one.
    """

    def __init__(
        self,
        name: str,
        symbols: dict[str, Any] | None = None,
        job_dir: str | Path | None = None,
        work_dir: str | Path | None = None,
    ):
        if not name:
            raise ValueError("Context requires a job name")
        self.name = name
        self.symbols = SymbolTable().merge(symbols)
        self.job_dir = Path(job_dir) if job_dir else Path.cwd() / name
        self.work_dir = Path(work_dir) if work_dir else Path.cwd()
        self.listeners: list[ContextListener] = []
        self.counters = RunCounters()
        self.started_at: datetime | None = None
        self.ended_at: datetime | None = None

        self._attributes: dict[str, Any] = {}
        self._error = False
        self._error_message: str | None = None
        self._opened = False

        self.symbols[JOB_NAME_SYM] = name
        self.symbols[JOB_DIR_SYM] = str(self.job_dir)
        self.symbols[WORK_DIR_SYM] = str(self.work_dir)

    # -- lifecycle -------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> None:
        """Acquire backing resources. Nothing to acquire in memory."""
        self._opened = True

    def close(self) -> None:
        """Flush and release backing resources."""
        self._opened = False

    def mark_started(self) -> None:
        self.started_at = datetime.now()
        self.symbols[RUN_START_SYM] = self.started_at

    def mark_ended(self) -> None:
        self.ended_at = datetime.now()

    # -- symbols and attributes ------------------------------------------

    def get_symbols(self) -> SymbolTable:
        return self.symbols

    def set_symbol(self, key: str, value: Any) -> None:
        self.symbols[key] = value

    def get_attribute(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def set_attribute(self, key: str, value: Any) -> None:
        self._attributes[key] = value

    # -- sticky error ----------------------------------------------------

    def set_error(self, message: str) -> None:
        """
        Flag the run as failed.

        The first call wins; later calls are ignored so the original
        failure reason is preserved.
        """
        if self._error:
            logger.debug(f"Context already in error, ignoring: {message}")
            return
        self._error = True
        self._error_message = message
        logger.error(f"Job '{self.name}' entered error state: {message}")

    def is_in_error(self) -> bool:
        return self._error

    @property
    def error_message(self) -> str | None:
        return self._error_message

    # -- listeners -------------------------------------------------------

    def add_listener(self, listener: ContextListener) -> None:
        if listener not in self.listeners:
            self.listeners.append(listener)

    def _notify(self, event: str, *args: Any) -> None:
        for listener in list(self.listeners):
            try:
                getattr(listener, event)(*args)
            except Exception as e:
                logger.warning(
                    f"Listener {type(listener).__name__}.{event} raised: {e}",
                    exc_info=True,
                )

    def fire_start(self) -> None:
        self._notify("on_start", self)

    def fire_end(self) -> None:
        self._notify("on_end", self)

    def fire_read(self, txn) -> None:
        self._notify("on_read", txn)

    def fire_filtered(self, txn, source: Any) -> None:
        self._notify("on_filtered", txn, source)

    def fire_validation_failed(self, source: Any, message: str) -> None:
        self.counters.validation_failures += 1
        self._notify("on_validation_failed", self, source, message)

    def fire_write(self, txn, source: Any) -> None:
        self._notify("on_write", txn, source)

    def fire_error(self, source: Any, message: str) -> None:
        self._notify("on_error", self, source, message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, error={self._error})"
