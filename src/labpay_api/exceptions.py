"""FastAPI exception handlers for converting CheckoutError to HTTP responses.

The ErrorKind-to-HTTP status mapping:
- 400 Bad Request: Validation failures and webhook signature failures
- 404 Not Found: Unknown flight lab or session
- 409 Conflict: Sold out
- 500 Internal Server Error: Transient upstream failures and misconfiguration
- 502 Bad Gateway: An upstream permanently rejected the request

Usage:
    from labpay_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from labpay.config import get_settings
from labpay.models.errors import CheckoutError, ConfigurationError, ErrorKind, ErrorResponse

logger = logging.getLogger(__name__)

ERROR_KIND_TO_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: HTTP_409_CONFLICT,
    ErrorKind.UPSTREAM_UNAVAILABLE: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.UPSTREAM_REJECTED: HTTP_502_BAD_GATEWAY,
    ErrorKind.INTERNAL_CONFIGURATION: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.AUTHENTICATION_FAILURE: HTTP_400_BAD_REQUEST,
}


def get_http_status_for_error(kind: ErrorKind) -> int:
    """Get HTTP status code for an ErrorKind, defaulting to 500."""
    return ERROR_KIND_TO_HTTP_STATUS.get(kind, HTTP_500_INTERNAL_SERVER_ERROR)


def _debug_errors() -> bool:
    try:
        return get_settings().debug_errors
    except ConfigurationError:
        return False


async def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    """Convert a CheckoutError into a JSON error response.

    Non-public kinds are logged in full and reported with a generic message
    unless DEBUG_ERRORS is set.
    """
    status_code = get_http_status_for_error(exc.kind)
    if exc.is_public:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc.message)
    else:
        logger.error(
            "%s %s -> %d: %s (%s) details=%s",
            request.method,
            request.url.path,
            status_code,
            exc.message,
            exc.kind.value,
            exc.details,
        )

    body = exc.to_response(debug=_debug_errors())
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies and parameters as 400 instead of 422."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    body = ErrorResponse(
        error=f"Invalid request: {field}: {message}" if field else f"Invalid request: {message}",
        code=ErrorKind.VALIDATION.value,
    )
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=body.model_dump(mode="json", exclude_none=True),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without exposing internal details."""
    logger.exception("Unhandled exception: %s", exc)
    body = ErrorResponse(error="Internal server error")
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(mode="json", exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(CheckoutError, checkout_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
