"""Pydantic models for the checkout and settlement pipeline."""

from .checkout import CheckoutResult, CheckoutSessionRequest, LineItem, PriceData
from .errors import (
    ERROR_MESSAGES,
    AuthenticationError,
    CheckoutError,
    ConfigurationError,
    ConflictError,
    ErrorKind,
    ErrorResponse,
    NotFoundError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
    ValidationError,
)
from .listing import Listing, Payee
from .reservation import ReservationToken
from .settlement import (
    LineItemProjection,
    LinePrice,
    SessionProjection,
    SettlementPayload,
    WebhookOutcome,
    WebhookResponse,
)

__all__ = [
    # Catalog
    "Listing",
    "Payee",
    # Checkout
    "CheckoutResult",
    "CheckoutSessionRequest",
    "LineItem",
    "PriceData",
    # Reservations
    "ReservationToken",
    # Settlement
    "LineItemProjection",
    "LinePrice",
    "SessionProjection",
    "SettlementPayload",
    "WebhookOutcome",
    "WebhookResponse",
    # Errors
    "AuthenticationError",
    "CheckoutError",
    "ConfigurationError",
    "ConflictError",
    "ERROR_MESSAGES",
    "ErrorKind",
    "ErrorResponse",
    "NotFoundError",
    "UpstreamRejectedError",
    "UpstreamUnavailableError",
    "ValidationError",
]
