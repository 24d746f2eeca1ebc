"""Correlation ID middleware for request tracing.

Takes X-Correlation-ID from the caller (the Webflow page passes its own) or
generates one, and scopes it to the request via contextvars. Checkout and
webhook services bind the lab and event IDs onto the same context, so every
log line of a request can be joined back to the browser or Stripe delivery
that caused it.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from labpay.utils.logging import clear_correlation_id, get_logger, set_correlation_id
from labpay.utils.validation import is_valid_correlation_id

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware that manages correlation IDs for request tracing."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and add correlation ID.

        Args:
            request: Incoming request
            call_next: Next middleware/handler in chain

        Returns:
            Response with correlation ID header
        """
        incoming_id = request.headers.get(CORRELATION_ID_HEADER)
        if incoming_id is not None and not is_valid_correlation_id(incoming_id):
            # Never echo arbitrary header content into logs or responses
            logger.warning("Ignoring malformed %s header", CORRELATION_ID_HEADER)
            incoming_id = None
        correlation_id = set_correlation_id(incoming_id)

        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            # Also drops lab/event IDs bound while handling the request
            clear_correlation_id()
