"""FastAPI dependency injection providers for shared services.

Factory functions decorated with @lru_cache give one instance per process.
Services are created lazily, so a missing secret only fails the routes
that need it.

Service Dependency Graph:
    Settings (get_settings)
        ├── TTLCache
        │       └── ContentStoreClient
        │               ├── CatalogResolver
        │               └── PayeeResolver
        ├── StripeService (get_stripe_service)
        ├── SeatReservations (memory | dynamodb)
        ├── EventLedger (memory | dynamodb)
        └── AutomationClient

    CheckoutService = Catalog + Payees + Stripe + SeatReservations
    SettlementEventForwarder = Stripe + Automation + EventLedger + SeatReservations
    SessionLookupService = Stripe + Catalog + Payees

Testing:
    Use reset_services() to clear cached instances between tests, or
    app.dependency_overrides to substitute a service.
"""

from functools import lru_cache

from labpay.config import get_settings
from labpay.models.errors import ConfigurationError
from labpay.services.automation import AutomationClient
from labpay.services.availability import (
    DynamoDBSeatLedger,
    InMemorySeatLedger,
    SeatReservations,
)
from labpay.services.cache import TTLCache
from labpay.services.catalog import CatalogResolver, PayeeResolver
from labpay.services.checkout import CheckoutService
from labpay.services.content_store import ContentStoreClient
from labpay.services.dynamodb import get_dynamodb_service
from labpay.services.event_ledger import DynamoDBEventLedger, EventLedger, InMemoryEventLedger
from labpay.services.session_lookup import SessionLookupService
from labpay.services.ssm_service import resolve_secret
from labpay.services.stripe_service import get_stripe_service
from labpay.services.webhook_handler import SettlementEventForwarder


def _require(value: str | None, env_name: str) -> str:
    if not value:
        raise ConfigurationError(f"Missing required configuration: {env_name}")
    return value


@lru_cache
def get_listing_cache() -> TTLCache:
    return TTLCache(get_settings().cache_ttl_seconds)


@lru_cache
def get_content_store() -> ContentStoreClient:
    """Get cached ContentStoreClient instance.

    Raises:
        ConfigurationError: WEBFLOW_TOKEN is not configured.
    """
    settings = get_settings()
    return ContentStoreClient(
        resolve_secret(settings, "webflow_token"),
        base_url=settings.webflow_api_base,
        timeout=settings.content_store_timeout_seconds,
        max_attempts=settings.max_retry_attempts,
        retry_base_delay=settings.retry_base_delay_seconds,
        cache=get_listing_cache(),
        locale_id=settings.webflow_cms_locale_id,
        page_size=settings.page_size,
        max_scan_items=settings.slug_scan_max_items,
    )


@lru_cache
def get_catalog_resolver() -> CatalogResolver:
    settings = get_settings()
    return CatalogResolver(
        get_content_store(),
        _require(settings.webflow_collection_id, "WEBFLOW_COLLECTION_ID"),
    )


@lru_cache
def get_payee_resolver() -> PayeeResolver:
    settings = get_settings()
    return PayeeResolver(
        get_content_store(),
        _require(settings.coach_collection_id, "COACH_COLLECTION_ID"),
    )


@lru_cache
def get_seat_reservations() -> SeatReservations:
    """Get the seat hold backend selected by LABPAY_STATE_BACKEND."""
    settings = get_settings()
    if settings.state_backend == "dynamodb":
        return DynamoDBSeatLedger(
            get_dynamodb_service(settings.environment),
            settings.seat_hold_seconds,
            committed_hold_seconds=settings.committed_hold_seconds,
        )
    return InMemorySeatLedger(
        settings.seat_hold_seconds,
        committed_hold_seconds=settings.committed_hold_seconds,
    )


@lru_cache
def get_event_ledger() -> EventLedger:
    """Get the processed-event ledger selected by LABPAY_STATE_BACKEND."""
    settings = get_settings()
    if settings.state_backend == "dynamodb":
        return DynamoDBEventLedger(
            get_dynamodb_service(settings.environment),
            settings.event_ledger_retention_seconds,
        )
    return InMemoryEventLedger(settings.event_ledger_retention_seconds)


@lru_cache
def get_automation_client() -> AutomationClient:
    return AutomationClient(get_settings())


@lru_cache
def get_checkout_service() -> CheckoutService:
    """Get cached CheckoutService instance.

    Returns:
        CheckoutService wired with the catalog, payees, Stripe and seat holds.
    """
    return CheckoutService(
        settings=get_settings(),
        catalog=get_catalog_resolver(),
        payees=get_payee_resolver(),
        stripe_service=get_stripe_service(),
        reservations=get_seat_reservations(),
    )


@lru_cache
def get_settlement_forwarder() -> SettlementEventForwarder:
    """Get cached SettlementEventForwarder instance."""
    return SettlementEventForwarder(
        stripe_service=get_stripe_service(),
        automation=get_automation_client(),
        ledger=get_event_ledger(),
        reservations=get_seat_reservations(),
    )


@lru_cache
def get_session_lookup_service() -> SessionLookupService:
    return SessionLookupService(
        stripe_service=get_stripe_service(),
        catalog=get_catalog_resolver(),
        payees=get_payee_resolver(),
    )


def reset_services() -> None:
    """Clear all cached service instances and settings.

    Call this in test fixtures to ensure clean state between tests.
    Also resets the underlying DynamoDB singleton.
    """
    from labpay.services.dynamodb import reset_dynamodb_service

    get_listing_cache.cache_clear()
    get_content_store.cache_clear()
    get_catalog_resolver.cache_clear()
    get_payee_resolver.cache_clear()
    get_seat_reservations.cache_clear()
    get_event_ledger.cache_clear()
    get_automation_client.cache_clear()
    get_checkout_service.cache_clear()
    get_settlement_forwarder.cache_clear()
    get_session_lookup_service.cache_clear()
    get_stripe_service.cache_clear()
    get_settings.cache_clear()

    reset_dynamodb_service()
