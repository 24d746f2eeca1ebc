"""Webhook handler for Stripe settlement events.

Provides the business logic for webhook deliveries separate from HTTP
routing concerns, so it can be unit tested without a server.

Per delivery: verify the signature, then branch on event type.
checkout.session.completed is forwarded to automation from a freshly
retrieved session; checkout.session.expired releases the seat hold; every
other type is acknowledged without further work. Success is only reported
once the forward is confirmed, otherwise Stripe would never redeliver.
"""

from collections.abc import Mapping
from typing import Any

from labpay.models.errors import AuthenticationError, CheckoutError
from labpay.models.settlement import (
    LineItemProjection,
    LinePrice,
    SessionProjection,
    SettlementPayload,
    WebhookOutcome,
    WebhookResponse,
)
from labpay.services.automation import AutomationClient
from labpay.services.availability import SeatReservations
from labpay.services.event_ledger import EventLedger
from labpay.services.stripe_service import StripeService
from labpay.utils.logging import bind_log_context, get_logger, log_webhook_event

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"

FORWARD_FAILED_MESSAGE = "Failed to forward to automation service"


def _plain(value: Any) -> Any:
    """Copy StripeObjects (dict subclasses) into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def _line_items(session: Mapping[str, Any]) -> list[LineItemProjection]:
    line_items = session.get("line_items") or {}
    projections = []
    for li in line_items.get("data") or []:
        price = li.get("price")
        projections.append(
            LineItemProjection(
                description=li.get("description"),
                quantity=li.get("quantity"),
                amount_total=li.get("amount_total"),
                amount_subtotal=li.get("amount_subtotal"),
                price=(
                    LinePrice(
                        id=price.get("id"),
                        unit_amount=price.get("unit_amount"),
                        currency=price.get("currency"),
                    )
                    if price
                    else None
                ),
            )
        )
    return projections


def build_settlement_payload(event: Mapping[str, Any], session: Mapping[str, Any]) -> SettlementPayload:
    """Build the automation payload from an event and its re-fetched session."""
    customer_details = session.get("customer_details") or None
    customer_email = (customer_details or {}).get("email") or session.get("customer_email")
    metadata = session.get("metadata") or {}

    return SettlementPayload(
        event_id=event["id"],
        event_type=event["type"],
        created=event.get("created"),
        session=SessionProjection(
            id=session["id"],
            customer_details=_plain(customer_details) if customer_details else None,
            customer_email=customer_email,
            amount_total=session.get("amount_total"),
            currency=session.get("currency"),
            metadata={str(k): str(v) for k, v in metadata.items()},
            line_items=_line_items(session),
        ),
    )


def _forward_failed(event_id: str) -> WebhookOutcome:
    return WebhookOutcome(
        status_code=500,
        body=WebhookResponse(forwarded=False, event_id=event_id, error=FORWARD_FAILED_MESSAGE),
    )


class SettlementEventForwarder:
    """Handler for Stripe webhook deliveries.

    Usage:
        forwarder = SettlementEventForwarder(stripe_svc, automation, ledger, seats)
        outcome = forwarder.handle(raw_body, request.headers.get("stripe-signature"))
    """

    def __init__(
        self,
        stripe_service: StripeService,
        automation: AutomationClient,
        ledger: EventLedger,
        reservations: SeatReservations,
    ) -> None:
        self._stripe = stripe_service
        self._automation = automation
        self._ledger = ledger
        self._reservations = reservations

    def handle(self, payload: bytes, signature: str | None) -> WebhookOutcome:
        """Process one webhook delivery.

        Args:
            payload: Raw request body, exactly as received
            signature: Stripe-Signature header value

        Returns:
            Status code and body to send back to Stripe.

        Raises:
            AuthenticationError: Missing or invalid signature. Nothing is
                forwarded.
        """
        if not signature:
            logger.warning("Missing Stripe signature header")
            raise AuthenticationError("Missing stripe-signature header")

        event = self._stripe.verify_webhook_signature(payload, signature)
        event_id = event.get("id", "")
        event_type = event.get("type", "")
        bind_log_context(event_id=event_id)

        if event_type == CHECKOUT_COMPLETED:
            return self.process_checkout_completed(event)
        if event_type == CHECKOUT_EXPIRED:
            return self.process_checkout_expired(event)

        log_webhook_event(logger, event_type, event_id, result="ignored")
        return WebhookOutcome(status_code=200, body=WebhookResponse(event_id=event_id))

    def process_checkout_completed(self, event: Mapping[str, Any]) -> WebhookOutcome:
        """Forward a completed checkout, at most once per ledger window."""
        event_id = event["id"]
        event_type = event["type"]
        session_id = ((event.get("data") or {}).get("object") or {}).get("id")

        if self._ledger.is_processed(event_id):
            log_webhook_event(logger, event_type, event_id, session_id=session_id, result="duplicate")
            return WebhookOutcome(
                status_code=200,
                body=WebhookResponse(duplicate=True, event_id=event_id),
            )

        try:
            session = self._stripe.retrieve_session(session_id, expand=("line_items",))
            payload = build_settlement_payload(event, session)
            self._automation.forward(payload)
        except CheckoutError as e:
            log_webhook_event(
                logger,
                event_type,
                event_id,
                session_id=session_id,
                result="error",
                error=e.message,
                error_kind=e.kind.value,
            )
            return _forward_failed(event_id)
        except Exception as e:
            logger.exception("Unexpected error forwarding event %s: %s", event_id, e)
            return _forward_failed(event_id)

        self._ledger.mark_processed(event_id)

        lab_id = payload.session.metadata.get("flight_lab_id")
        token = payload.session.metadata.get("reservation_token")
        if token:
            try:
                self._reservations.commit(token)
            except CheckoutError as e:
                # The forward already succeeded; an uncommitted hold still
                # counts until it expires.
                logger.warning("Could not commit seat hold %s: %s", token, e.message)

        log_webhook_event(
            logger,
            event_type,
            event_id,
            session_id=session_id,
            lab_id=lab_id,
            result="forwarded",
        )
        return WebhookOutcome(
            status_code=200,
            body=WebhookResponse(forwarded=True, event_id=event_id),
        )

    def process_checkout_expired(self, event: Mapping[str, Any]) -> WebhookOutcome:
        """Release the seat held by a session that expired unpaid."""
        event_id = event["id"]
        session = (event.get("data") or {}).get("object") or {}
        metadata = session.get("metadata") or {}
        token = metadata.get("reservation_token")

        released = bool(token) and self._reservations.release(token)
        log_webhook_event(
            logger,
            event["type"],
            event_id,
            session_id=session.get("id"),
            lab_id=metadata.get("flight_lab_id"),
            result="released" if released else "ignored",
        )
        return WebhookOutcome(status_code=200, body=WebhookResponse(event_id=event_id))
