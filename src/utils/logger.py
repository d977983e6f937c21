"""
JSON-line logging for the recorders and notification clients.

Every record is one JSON object on stderr so CI runners can grep or ingest
it. ``log_operation`` wraps a recorder's ``record()`` and reports how many
commands were sent, which transcript came back and whether the session
ended early.
"""

import json
import logging
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

OPTIONAL_FIELDS = ("operation", "context", "duration_ms", "error")


def truncate_text(text: Optional[str], limit: int = 120) -> str:
    """
    Shorten game output for log context.

    Newlines are flattened so one log record stays on one line.
    """
    if not text:
        return ""

    flat = text.replace("\r", "").replace("\n", "\\n ")
    if len(flat) <= limit:
        return flat
    return f"{flat[: max(limit - 3, 0)]}..."


class JsonLineFormatter(logging.Formatter):
    """Render a record and its structured fields as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        for key in OPTIONAL_FIELDS:
            value = getattr(record, key, None)
            if value is None or value == {}:
                continue
            entry[key] = round(value, 2) if key == "duration_ms" else value
        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogger:
    """
    Thin wrapper over a stdlib logger that attaches ``operation``,
    ``context``, ``duration_ms`` and ``error`` to each record.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        if not any(isinstance(h.formatter, JsonLineFormatter) for h in self.logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(JsonLineFormatter())
            self.logger.addHandler(handler)
        self.logger.propagate = False

    def log(
        self,
        level: int,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None,
    ) -> None:
        self.logger.log(
            level,
            message,
            extra={
                "operation": operation,
                "context": context,
                "duration_ms": duration_ms,
                "error": error,
            },
        )

    def debug(self, message: str, **fields: Any) -> None:
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log(logging.ERROR, message, **fields)


def _recording_request(args: tuple, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """Context for a ``record(self, commands, options)`` call."""
    commands = kwargs.get("commands", args[1] if len(args) > 1 else None)
    options = kwargs.get("options", args[2] if len(args) > 2 else None)

    context: Dict[str, Any] = {}
    if args:
        context["recorder"] = type(args[0]).__name__
    if commands is not None:
        context["command_count"] = len(commands)
    seed = getattr(options, "seed", None)
    if seed is not None:
        context["seed"] = seed
    return context


def _recording_result(transcript: Any) -> Dict[str, Any]:
    """Context describing the transcript a recorder returned."""
    context: Dict[str, Any] = {}
    transcript_id = getattr(transcript, "id", None)
    if transcript_id is not None:
        context["transcript_id"] = transcript_id
    entries = getattr(transcript, "entries", None)
    if entries is not None:
        context["entries"] = len(entries)
    extra = getattr(getattr(transcript, "metadata", None), "extra", None) or {}
    if "truncated" in extra:
        context["truncated"] = extra["truncated"]
    return context


def log_operation(operation_name: str):
    """
    Time a recorder's ``record()`` call.

    Logs the command count and seed on entry, then the transcript id,
    entry count and truncation flag on success, or the error on failure.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            request = _recording_request(args, kwargs)
            logger.debug(f"Starting {operation_name}", operation=operation_name, context=request)

            started = time.perf_counter()
            try:
                transcript = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Failed {operation_name}",
                    operation=operation_name,
                    context=request,
                    error=f"{type(e).__name__}: {e}",
                    duration_ms=(time.perf_counter() - started) * 1000,
                )
                raise

            logger.info(
                f"Completed {operation_name}",
                operation=operation_name,
                context={**request, **_recording_result(transcript)},
                duration_ms=(time.perf_counter() - started) * 1000,
            )
            return transcript

        return wrapper

    return decorator


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)
