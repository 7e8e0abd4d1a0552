"""Observability module for structured logging."""

from printful_fulfillment.observability.logging import (
    LogContext,
    configure_logging,
    get_current_request_id,
)

__all__ = [
    "LogContext",
    "configure_logging",
    "get_current_request_id",
]
