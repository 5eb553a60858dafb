"""
Structured JSON logging for chunkflow.

Contract:
    Every chunkflow logger lives under the ``chunkflow`` namespace and, once
    ``configure_logging()`` has run, writes one JSON object per line::

        {"ts": ..., "level": ..., "logger": ..., "message": "chunk_committed",
         "run_id": ..., "job_name": ..., "chunk_index": 2, ...}

    ``message`` is a snake_case event name.  Run-scoped fields come from
    ``LogContext``; per-event fields come from ``extra=``.

Invariants enforced:
    - Envelope keys (ts, level, logger, message) are never overwritten by
      context or extra fields.
    - A logged ChunkflowError contributes ``exc_code`` plus one ``exc_<attr>``
      key per structured attribute it carries (run_id, chunk_index, key,
      resource, ...).
    - Anything json cannot encode (UUID, Path, Decimal) is written as str();
      datetimes as ISO-8601.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import IO, Any

ROOT_LOGGER_NAME = "chunkflow"

# ---------------------------------------------------------------------------
# Run-scoped fields
# ---------------------------------------------------------------------------

_EMPTY: Mapping[str, str] = {}
_run_fields: ContextVar[Mapping[str, str]] = ContextVar(
    "chunkflow_run_fields", default=_EMPTY,
)


class LogContext:
    """Run-scoped log fields, isolated per thread and per asyncio task.

    The JobDriver binds ``run_id`` and ``job_name`` around each run so every
    event of that run (chunk commits, adapter opens, failures) carries them
    without passing them down.
    """

    FIELDS = ("run_id", "job_name", "correlation_id", "trace_id")

    @classmethod
    def _merged(cls, fields: Mapping[str, str | None]) -> dict[str, str]:
        unknown = set(fields) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
        merged = dict(_run_fields.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        return merged

    @classmethod
    def set(
        cls,
        *,
        run_id: str | None = None,
        job_name: str | None = None,
        correlation_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        """Add fields to the current context; None leaves a field unchanged."""
        _run_fields.set(cls._merged({
            "run_id": run_id,
            "job_name": job_name,
            "correlation_id": correlation_id,
            "trace_id": trace_id,
        }))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_run_fields.get())

    @classmethod
    def clear(cls) -> None:
        _run_fields.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block.

        On exit the context is exactly what it was on entry, including
        fields that were absent.
        """
        token = _run_fields.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _run_fields.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord has; anything else on a record came from extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON line per record: envelope, run context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload = self._envelope(record)
        for source in (LogContext.get_all(), self._extras(record)):
            for key, value in source.items():
                payload.setdefault(key, value)
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_to_json)

    @staticmethod
    def _envelope(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _extras(record: logging.LogRecord) -> dict[str, Any]:
        return {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        }

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for attr, value in vars(exc).items():
            if attr.startswith("_") or attr in ("args", "code") or value is None:
                continue
            fields[f"exc_{attr}"] = value
        return fields


# ---------------------------------------------------------------------------
# Loggers and setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger for a chunkflow component, e.g. ``get_logger("batch.scheduler")``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_setup_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``chunkflow`` logger.

    Only the first call has any effect; the CLI and the test session both
    call it, and the first caller's level and destination win.  Output goes
    to ``handler`` if given, else to ``stream`` (default stderr).
    Records do not propagate to the root logger.
    """
    global _installed_handler
    with _setup_lock:
        if _installed_handler is not None:
            return
        target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())

        chunkflow_logger = logging.getLogger(ROOT_LOGGER_NAME)
        chunkflow_logger.setLevel(level)
        chunkflow_logger.propagate = False
        chunkflow_logger.addHandler(target)
        _installed_handler = target


def reset_logging() -> None:
    """Undo ``configure_logging()``. FOR TESTING ONLY."""
    global _installed_handler
    with _setup_lock:
        _installed_handler = None
        chunkflow_logger = logging.getLogger(ROOT_LOGGER_NAME)
        chunkflow_logger.handlers.clear()
        chunkflow_logger.setLevel(logging.WARNING)
        chunkflow_logger.propagate = True
