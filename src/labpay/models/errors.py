"""Error taxonomy for checkout and settlement operations.

Every failure the core can raise carries an ErrorKind. The HTTP layer maps
kinds to status codes (see labpay_api.exceptions); services only pick the
kind and a human-readable message.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorKind(str, Enum):
    """Failure categories for the checkout and settlement pipeline."""

    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UPSTREAM_REJECTED = "UPSTREAM_REJECTED"
    INTERNAL_CONFIGURATION = "INTERNAL_CONFIGURATION"
    AUTHENTICATION_FAILURE = "AUTHENTICATION_FAILURE"


# Default messages, used when a raise site gives none
ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Request validation failed",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.CONFLICT: "Request conflicts with current state",
    ErrorKind.UPSTREAM_UNAVAILABLE: "A dependency is temporarily unavailable",
    ErrorKind.UPSTREAM_REJECTED: "A dependency rejected the request",
    ErrorKind.INTERNAL_CONFIGURATION: "Server configuration error",
    ErrorKind.AUTHENTICATION_FAILURE: "Authentication failed",
}

# Kinds whose message may be shown to the buyer as-is. Everything else is
# logged in full and replaced by a generic message unless debug is enabled.
PUBLIC_ERROR_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.VALIDATION,
        ErrorKind.NOT_FOUND,
        ErrorKind.CONFLICT,
        ErrorKind.AUTHENTICATION_FAILURE,
    }
)


class ErrorResponse(BaseModel):
    """JSON body returned for failed requests."""

    model_config = ConfigDict(strict=True)

    error: str
    code: Optional[str] = None
    details: Optional[dict[str, str]] = None


class CheckoutError(Exception):
    """Base exception for the checkout and settlement pipeline.

    Can be caught by the API layer and converted to an ErrorResponse.
    """

    kind: ErrorKind = ErrorKind.INTERNAL_CONFIGURATION

    def __init__(
        self,
        message: str | None = None,
        *,
        kind: ErrorKind | None = None,
        details: Optional[dict[str, str]] = None,
    ) -> None:
        if kind is not None:
            self.kind = kind
        self.message = message or ERROR_MESSAGES[self.kind]
        self.details = details
        super().__init__(self.message)

    @property
    def is_public(self) -> bool:
        """Whether the message is safe to show to the caller."""
        return self.kind in PUBLIC_ERROR_KINDS

    def to_response(self, *, debug: bool = False) -> ErrorResponse:
        """Convert this exception to a response body.

        Args:
            debug: Expose internal messages and details for non-public kinds.
        """
        if self.is_public or debug:
            return ErrorResponse(
                error=self.message,
                code=self.kind.value,
                details=self.details,
            )
        return ErrorResponse(error=ERROR_MESSAGES[self.kind], code=self.kind.value)


class ValidationError(CheckoutError):
    """Caller-supplied input is malformed or missing."""

    kind = ErrorKind.VALIDATION


class NotFoundError(CheckoutError):
    """A referenced entity does not exist upstream."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(CheckoutError):
    """The request is valid but current state precludes it (e.g. sold out)."""

    kind = ErrorKind.CONFLICT


class UpstreamUnavailableError(CheckoutError):
    """Transient dependency failure; retrying later may succeed."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class UpstreamRejectedError(CheckoutError):
    """A dependency permanently refused the request."""

    kind = ErrorKind.UPSTREAM_REJECTED

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        details: Optional[dict[str, str]] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.status_code = status_code


class ConfigurationError(CheckoutError):
    """Deployment configuration is missing or malformed."""

    kind = ErrorKind.INTERNAL_CONFIGURATION


class AuthenticationError(CheckoutError):
    """A signature or credential check failed."""

    kind = ErrorKind.AUTHENTICATION_FAILURE


# Stripe error code to user-friendly message mapping. Only consulted when a
# Stripe error reaches the buyer in debug mode or through a public kind.
STRIPE_ERROR_MESSAGES: dict[str, str] = {
    "resource_missing": "The referenced payment resource does not exist.",
    "account_invalid": "The coach's payment account is not able to receive payments.",
    "rate_limit": "Too many requests. Please wait a moment and try again.",
    "processing_error": "A processing error occurred. Please try again.",
}


def get_user_friendly_stripe_message(
    stripe_error_code: Optional[str],
    default_message: str = "Payment processing error",
) -> str:
    """Get a user-friendly message for a Stripe error code.

    Args:
        stripe_error_code: The Stripe error code (e.g., 'resource_missing').
        default_message: Message to use if error code is unknown.

    Returns:
        User-friendly error message.
    """
    if stripe_error_code and stripe_error_code in STRIPE_ERROR_MESSAGES:
        return STRIPE_ERROR_MESSAGES[stripe_error_code]
    return default_message
