"""
Structured logging for framepipe.

Every module logs through ``get_logger(__name__)``. Records go to stdout as
JSON by default (``LOG_FORMAT=text`` for local runs); anything passed via
``extra=`` such as ``job_name`` or the run counters becomes a JSON field.
"""
import logging
import os
import sys
import time

from pythonjsonlogger import jsonlogger

ROOT_LOGGER = "framepipe"

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class JobJsonFormatter(jsonlogger.JsonFormatter):
    """Fills the timestamp, level and logger fields of each record"""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


def setup_logger(
    name: str = ROOT_LOGGER,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Attach a single stdout handler to the named logger.

    Args:
        name: Logger name
        level: Level name; defaults to LOG_LEVEL, then INFO
        format_type: "json" or "text"; defaults to LOG_FORMAT, then json
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    if (format_type or os.getenv("LOG_FORMAT", "json")) == "json":
        formatter: logging.Formatter = JobJsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(log_level)
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Module loggers propagate to the ``framepipe`` logger, which is set up
    on first use.
    """
    if not logging.getLogger(ROOT_LOGGER).handlers:
        setup_logger(ROOT_LOGGER)
    return logging.getLogger(name)


class log_operation:
    """
    Logs the start and outcome of a block with its duration:

        with log_operation("Job nightly", logger=logger, job_name="nightly"):
            ...
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = {"operation": operation_name, **extra_fields}
        self.start_time = 0.0

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.info(f"Starting: {self.operation_name}", extra=self.extra_fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        fields = {**self.extra_fields, "duration_seconds": round(time.monotonic() - self.start_time, 3)}
        if exc_type is None:
            self.logger.info(f"Completed: {self.operation_name}", extra=fields)
        else:
            fields["error_type"] = exc_type.__name__
            self.logger.error(f"Failed: {self.operation_name}: {exc_val}", extra=fields)
        return False
