"""Structured logging utilities with correlation ID and checkout context.

Provides:
- Correlation ID context management for request tracing
- A bound log context carrying the flight lab, Stripe event and session
  being worked on, so every line of a checkout or webhook can be joined
- Structured logging formatter for consistent log output
- Helper functions for checkout and webhook logging

Usage:
    from labpay.utils.logging import bind_log_context, get_logger, set_correlation_id

    # In middleware/request handler:
    set_correlation_id(request.headers.get("X-Correlation-ID"))

    # In service code:
    logger = get_logger(__name__)
    bind_log_context(lab_id=listing.id)
    logger.info("Seat held")  # [<correlation-id> lab_id=lab_123] Seat held
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

# Context variables are per request, in both threads and tasks
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_log_context: ContextVar[dict[str, str] | None] = ContextVar("log_context", default=None)

# Render order of bound fields in the log prefix
LOG_CONTEXT_FIELDS = ("lab_id", "event_id", "session_id")

NO_CORRELATION_ID = "no-correlation-id"


def generate_correlation_id() -> str:
    """Generate a new correlation ID.

    Returns:
        UUID-based correlation ID string
    """
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current request context.

    Args:
        correlation_id: Optional existing correlation ID. If None, generates new one.

    Returns:
        The correlation ID that was set
    """
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID and any bound log context."""
    _correlation_id.set(None)
    _log_context.set(None)


def bind_log_context(**fields: str | None) -> None:
    """Attach identifiers to every later log line in this context.

    Only the names in LOG_CONTEXT_FIELDS are rendered in the prefix; empty
    values are skipped so a partial lookup never blanks an earlier binding.

    Args:
        **fields: e.g. lab_id="lab_123", event_id="evt_123"
    """
    current = dict(_log_context.get() or {})
    current.update({key: str(value) for key, value in fields.items() if value})
    _log_context.set(current)


def get_log_context() -> dict[str, str]:
    return dict(_log_context.get() or {})


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id and bound context to records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        record.log_context = get_log_context()
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter that prefixes each line with the request's identifiers.

    Output: ``[<correlation-id> lab_id=... event_id=...] <message>``
    """

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        context = getattr(record, "log_context", None)
        if context is None:
            context = get_log_context()

        base = super().format(record)

        prefix = [record.correlation_id]
        prefix.extend(f"{key}={context[key]}" for key in LOG_CONTEXT_FIELDS if key in context)
        return f"[{' '.join(prefix)}] {base}"


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())

    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Install the structured formatter on the root logger.

    Handlers are only added the first time, so repeated imports of the app
    module (Lambda warm starts, reloads) do not duplicate output.

    Args:
        level: Root log level
    """
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)


def log_checkout_operation(
    logger: logging.Logger,
    operation: str,
    *,
    lab_id: str | None = None,
    session_id: str | None = None,
    amount_cents: int | None = None,
    fee_cents: int | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a checkout step and bind its identifiers for later lines.

    Args:
        logger: Logger instance
        operation: Step name (e.g., "session_created", "sold_out")
        lab_id: Flight lab ID if known
        session_id: Stripe Checkout Session ID if known
        amount_cents: Unit amount the fee was computed from
        fee_cents: Platform fee in cents
        error: Error message if the step failed
        **extra: Additional context fields
    """
    bind_log_context(lab_id=lab_id, session_id=session_id)

    context: dict[str, Any] = {"operation": operation}
    if lab_id:
        context["lab_id"] = lab_id
    if session_id:
        context["session_id"] = session_id
    if amount_cents is not None:
        context["amount_cents"] = amount_cents
    if fee_cents is not None:
        context["fee_cents"] = fee_cents
    if error:
        context["error"] = error
    context.update(extra)

    details = [f"{key}={value}" for key, value in context.items() if key != "operation"]
    message = " | ".join([f"Checkout {operation}", *details])

    if error:
        logger.error(message, extra=context)
    else:
        logger.info(message, extra=context)


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    session_id: str | None = None,
    lab_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log the outcome of one Stripe delivery.

    Level follows the result: error for failed forwards (Stripe will
    redeliver), warning for duplicates and ignored types, info otherwise.

    Args:
        logger: Logger instance
        event_type: Stripe event type (e.g., "checkout.session.completed")
        event_id: Stripe event ID
        session_id: Checkout Session ID if available
        lab_id: Flight lab ID from session metadata if available
        result: forwarded, duplicate, ignored, released or error
        error: Error message if processing failed
        **extra: Additional context fields
    """
    bind_log_context(event_id=event_id, session_id=session_id, lab_id=lab_id)

    context: dict[str, Any] = {"event_type": event_type, "event_id": event_id}
    if session_id:
        context["session_id"] = session_id
    if lab_id:
        context["lab_id"] = lab_id
    if result:
        context["result"] = result
    if error:
        context["error"] = error
    context.update(extra)

    parts = [f"Webhook {event_type} ({event_id})"]
    if result:
        parts.append(f"result={result}")
    if error:
        parts.append(f"error={error}")
    message = " | ".join(parts)

    if result == "error":
        logger.error(message, extra=context)
    elif result in ("duplicate", "ignored"):
        logger.warning(message, extra=context)
    else:
        logger.info(message, extra=context)
