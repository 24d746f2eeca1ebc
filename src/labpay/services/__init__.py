"""Services for the flight lab checkout and settlement pipeline."""

from .automation import AutomationClient
from .availability import (
    DynamoDBSeatLedger,
    InMemorySeatLedger,
    SeatReservations,
    check_available,
)
from .cache import ListingCache, NullCache, TTLCache
from .catalog import CatalogResolver, PayeeResolver
from .checkout import CheckoutService
from .content_store import ContentStoreClient
from .dynamodb import DynamoDBService, get_dynamodb_service
from .event_ledger import DynamoDBEventLedger, EventLedger, InMemoryEventLedger
from .fees import FeePolicy, compute_fee
from .session_lookup import SessionLookupService
from .ssm_service import SSMService, SSMServiceError, get_ssm_service, resolve_secret
from .stripe_service import StripeService, get_stripe_service
from .urls import build_redirect_urls, ensure_session_token
from .webhook_handler import SettlementEventForwarder

__all__ = [
    "AutomationClient",
    "CatalogResolver",
    "CheckoutService",
    "ContentStoreClient",
    "DynamoDBEventLedger",
    "DynamoDBSeatLedger",
    "DynamoDBService",
    "EventLedger",
    "FeePolicy",
    "InMemoryEventLedger",
    "InMemorySeatLedger",
    "ListingCache",
    "NullCache",
    "PayeeResolver",
    "SSMService",
    "SSMServiceError",
    "SeatReservations",
    "SessionLookupService",
    "SettlementEventForwarder",
    "StripeService",
    "TTLCache",
    "build_redirect_urls",
    "check_available",
    "compute_fee",
    "ensure_session_token",
    "get_dynamodb_service",
    "get_ssm_service",
    "get_stripe_service",
    "resolve_secret",
]
