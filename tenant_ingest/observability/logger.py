"""
Structured logging for tenant-ingest.

All module loggers are children of the ``tenant_ingest`` logger, which owns
the single stdout handler. Records are JSON (python-json-logger) unless
LOG_FORMAT=text. While a batch runs, ``run_context`` binds the run id and
the current tenant key so every record emitted underneath carries them.
"""
import logging
import os
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "tenant_ingest"

_run_fields: ContextVar[dict[str, Any]] = ContextVar("tenant_ingest_run_fields", default={})


class RunContextFilter(logging.Filter):
    """Copies the fields bound by run_context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _run_fields.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class IngestJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record with UTC timestamp, level and logger name."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


def configure_logging(level: str | None = None, format_type: str | None = None) -> logging.Logger:
    """
    (Re)configure the package logger.

    Args:
        level: Level name (defaults to LOG_LEVEL, then INFO)
        format_type: "json" or "text" (defaults to LOG_FORMAT, then json)

    Returns:
        The ``tenant_ingest`` logger
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    format_type = (format_type or os.getenv("LOG_FORMAT") or "json").lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RunContextFilter())
    if format_type == "text":
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    else:
        handler.setFormatter(IngestJsonFormatter(fmt="%(timestamp)s %(level)s %(logger)s %(message)s"))

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers.clear()
    root.addHandler(handler)
    resolved = logging.getLevelName(level_name)
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a module, e.g. ``get_logger(__name__)``.

    Names outside the package are nested under it so they share its handler.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        configure_logging()
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


@contextmanager
def run_context(**fields: Any) -> Iterator[None]:
    """
    Bind fields (run_id, tenant_key, ...) to every record logged inside.

    Nested contexts add to the outer one.
    """
    token = _run_fields.set({**_run_fields.get(), **fields})
    try:
        yield
    finally:
        _run_fields.reset(token)


@contextmanager
def log_operation(operation: str, logger: logging.Logger, **extra: Any) -> Iterator[None]:
    """
    Log start, completion and failure of a block with its duration.

    Usage:
        with log_operation("Ingest tenant", logger, records=12):
            ...
    """
    started = time.monotonic()
    logger.info(f"Starting: {operation}", extra={"operation": operation, **extra})
    try:
        yield
    except Exception as e:
        logger.error(
            f"Failed: {operation}",
            extra={
                "operation": operation,
                "duration_seconds": round(time.monotonic() - started, 3),
                "error_type": type(e).__name__,
                "error_message": str(e),
                **extra,
            },
        )
        raise
    logger.info(
        f"Completed: {operation}",
        extra={
            "operation": operation,
            "duration_seconds": round(time.monotonic() - started, 3),
            **extra,
        },
    )
