"""Structured JSON logging with request correlation."""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

# Request ID of the HTTP request being served, set by RequestLoggingMiddleware
_current_request_id: ContextVar[str | None] = ContextVar("current_request_id", default=None)

# Extra fields attached by LogContext
_log_extra: ContextVar[dict[str, Any]] = ContextVar("log_extra", default={})

# LogContext fields promoted to top-level JSON keys
CORRELATION_FIELDS = ("order_id", "workflow")

# Attributes every LogRecord has; anything else came from extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "request_id",
    "extra",
}


def get_current_request_id() -> str | None:
    """Get the request ID bound to the current context."""
    return _current_request_id.get()


def set_current_request_id(request_id: str | None):
    """Bind a request ID to the current context; returns the reset token."""
    return _current_request_id.set(request_id)


def reset_current_request_id(token) -> None:
    """Restore the request ID that was bound before set_current_request_id."""
    _current_request_id.reset(token)


def get_log_extra() -> dict[str, Any]:
    """Get the extra fields bound by enclosing LogContext blocks."""
    return dict(_log_extra.get())


class StructuredLogFormatter(logging.Formatter):
    """
    JSON log formatter with request correlation.

    Outputs logs in JSON format with:
    - Standard log fields (timestamp, level, message, logger)
    - Request correlation (request_id)
    - Order correlation (order_id, workflow) from LogContext
    - Remaining LogContext and record extra fields
    - Exception information
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_current_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        log_entry["location"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        extra = {
            **get_log_extra(),
            **{k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS},
            **(getattr(record, "extra", None) or {}),
        }
        for key in CORRELATION_FIELDS:
            if key in extra:
                log_entry[key] = extra.pop(key)
        if extra:
            log_entry["extra"] = extra

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class RequestContextFilter(logging.Filter):
    """Logging filter that adds the request ID to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_current_request_id() or ""
        return True


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    module_levels: dict[str, str] | None = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Default log level.
        json_format: If True, use JSON format. Otherwise, use standard format.
        module_levels: Per-module log levels (e.g., {"httpx": "WARNING"}).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)

    if json_format:
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
        ))

    handler.addFilter(RequestContextFilter())
    root_logger.addHandler(handler)

    if module_levels:
        for module, mod_level in module_levels.items():
            logging.getLogger(module).setLevel(getattr(logging, mod_level.upper()))

    # Reduce noise from common libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.info(
        f"Logging configured: level={level}, json={json_format}, "
        f"module_levels={module_levels or {}}"
    )


class LogContext:
    """
    Context manager for adding extra fields to logs.

    Fields live in a context variable, so concurrent tasks each see
    their own fields and nesting merges outer and inner fields.

    Usage:
        with LogContext(order_id="order_123", workflow="create-printful-order"):
            logger.info("Creating remote order")  # Includes extra fields
    """

    def __init__(self, **kwargs: Any) -> None:
        self.extra = kwargs
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _log_extra.set({**_log_extra.get(), **self.extra})
        return self

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _log_extra.reset(self._token)
            self._token = None
