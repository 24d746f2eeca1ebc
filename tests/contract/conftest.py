"""Fixtures for HTTP contract tests.

The app runs with real services wired to fakes at the network edge: the CMS
and automation endpoints are httpx MockTransports and StripeClient is
patched. Webhook signatures are verified for real.
"""

from typing import Any, Callable, Generator
from unittest.mock import MagicMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from labpay.services.automation import AutomationClient
from labpay.services.availability import InMemorySeatLedger
from labpay.services.catalog import CatalogResolver, PayeeResolver
from labpay.services.checkout import CheckoutService
from labpay.services.event_ledger import InMemoryEventLedger
from labpay.services.session_lookup import SessionLookupService
from labpay.services.stripe_service import StripeService
from labpay.services.webhook_handler import SettlementEventForwarder
from labpay_api.dependencies import (
    get_checkout_service,
    get_session_lookup_service,
    get_settlement_forwarder,
)
from labpay_api.main import app
from tests.helpers import COACH_COLLECTION, LAB_COLLECTION, retrieved_session


class AutomationEndpoint:
    """Fake automation receiver. Set respond to change its behavior."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, text="Accepted"
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


@pytest.fixture
def stripe_client() -> Generator[MagicMock, None, None]:
    """Patched StripeClient with a created and a retrievable session."""
    with patch("labpay.services.stripe_service.StripeClient") as mock_cls:
        client = MagicMock()
        client.checkout.sessions.create.return_value = MagicMock(
            id="cs_test_abc123",
            url="https://checkout.stripe.com/c/pay/cs_test_abc123",
            expires_at=None,
        )
        client.checkout.sessions.retrieve.return_value = retrieved_session()
        mock_cls.return_value = client
        yield client


@pytest.fixture
def automation_endpoint() -> AutomationEndpoint:
    return AutomationEndpoint()


@pytest.fixture
def api_client(
    settings,
    content_store_factory,
    stripe_client,
    automation_endpoint,
) -> Generator[TestClient, None, None]:
    """TestClient with services overridden to use the fakes."""
    store = content_store_factory()
    catalog = CatalogResolver(store, LAB_COLLECTION)
    payees = PayeeResolver(store, COACH_COLLECTION)
    stripe_service = StripeService(settings)
    seats = InMemorySeatLedger(
        settings.seat_hold_seconds,
        committed_hold_seconds=settings.committed_hold_seconds,
    )
    automation = AutomationClient(
        settings,
        transport=httpx.MockTransport(automation_endpoint.handle),
    )
    ledger = InMemoryEventLedger(settings.event_ledger_retention_seconds)

    overrides: dict[Callable[..., Any], Callable[..., Any]] = {
        get_checkout_service: lambda: CheckoutService(
            settings, catalog, payees, stripe_service, seats
        ),
        get_settlement_forwarder: lambda: SettlementEventForwarder(
            stripe_service,
            automation,
            ledger,
            seats,
        ),
        get_session_lookup_service: lambda: SessionLookupService(stripe_service, catalog, payees),
    }
    app.dependency_overrides.update(overrides)
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
