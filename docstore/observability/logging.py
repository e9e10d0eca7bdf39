"""
Contextual logging for DOCSTORE.

Two context variables travel with every task: an optional correlation ID,
set by the application around a unit of work, and the document context
(collection, document ID, operation) that DocumentClient enters for each
call. Loggers from get_logger() attach both to every record as ``extra``
fields, so a structured formatter can emit them without the call sites
repeating them.
"""

import contextvars
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

_document_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "document_context", default={}
)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Set a correlation ID in the current context.

    Args:
        correlation_id: Optional correlation ID (generates new one if None)

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear the correlation ID from context."""
    _correlation_id.set(None)


@contextmanager
def document_context(
    collection: str | None = None, document_id: str | None = None, **fields: Any
) -> Iterator[dict[str, Any]]:
    """
    Attach a collection (and optionally a document) to log records in this block.

    Contexts nest; leaving the block restores the enclosing one.

    Usage:
        with document_context("users", "alice", operation="read"):
            logger.info("Reading")  # record.collection == "users"
    """
    context = {key: value for key, value in fields.items() if value is not None}
    if collection is not None:
        context["collection"] = collection
    if document_id is not None:
        context["document_id"] = document_id
    token = _document_context.set(context)
    try:
        yield context
    finally:
        _document_context.reset(token)


def _context_fields() -> dict[str, Any]:
    fields = dict(_document_context.get())
    correlation_id = _correlation_id.get()
    if correlation_id:
        fields["correlation_id"] = correlation_id
    return fields


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds the correlation ID and document context to records."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**_context_fields(), **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a contextual logger.

    Args:
        name: Logger name (typically __name__)
    """
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.DEBUG,
    success: bool = True,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """
    Log the outcome of one operation as a structured record.

    Args:
        logger: Logger instance
        operation: Operation name
        level: Log level
        success: Whether operation succeeded
        duration_ms: Operation duration in milliseconds
        **context: Additional fields (error, error_type, ...)
    """
    fields: dict[str, Any] = {**_context_fields(), "operation": operation, "success": success}
    message = f"Operation: {operation}" if success else f"Operation failed: {operation}"
    if duration_ms is not None:
        fields["duration_ms"] = round(duration_ms, 2)
        message += f" (duration: {duration_ms:.2f}ms)"
    fields.update(context)

    logger.log(level, message, extra=fields)
