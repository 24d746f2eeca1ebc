"""Stripe gateway for Checkout Sessions, prices and webhook verification.

Provides integration with Stripe using the v8+ StripeClient pattern. The
secret key and webhook secret come from settings, or SSM Parameter Store
when enabled.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Sequence

import stripe
from stripe import StripeClient

from labpay.config import Settings, get_settings
from labpay.models.checkout import CheckoutSessionRequest
from labpay.models.errors import (
    AuthenticationError,
    CheckoutError,
    NotFoundError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
    get_user_friendly_stripe_message,
)
from labpay.services.ssm_service import resolve_secret

logger = logging.getLogger(__name__)

STUDENT_NAME_FIELD = "student_name"

# Transient failures: a later retry may succeed
_TRANSIENT_ERRORS: tuple[type[stripe.StripeError], ...] = (
    stripe.APIConnectionError,
    stripe.RateLimitError,
    stripe.APIError,
)


def map_stripe_error(e: stripe.StripeError, action: str) -> CheckoutError:
    """Translate a Stripe SDK error into the domain taxonomy.

    Connection, rate-limit and API errors are transient; everything else
    (invalid request, permission, authentication, card) is a rejection.
    """
    error_code = getattr(e, "code", None)
    message = get_user_friendly_stripe_message(error_code, f"Failed to {action}")
    details = {"stripe_error": str(e)}
    if error_code:
        details["stripe_code"] = error_code

    if isinstance(e, _TRANSIENT_ERRORS):
        return UpstreamUnavailableError(message, details=details)
    return UpstreamRejectedError(
        message,
        status_code=getattr(e, "http_status", None),
        details=details,
    )


class StripeService:
    """Service for Stripe payment operations.

    Handles:
    - Destination-charge Checkout Session creation
    - Session and price retrieval
    - Webhook signature validation

    Usage:
        stripe_svc = get_stripe_service()
        session = stripe_svc.create_checkout_session(request)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the service. Credentials are resolved on first use.

        Args:
            settings: Application settings. Defaults to get_settings().
        """
        self._settings = settings or get_settings()
        self._client: StripeClient | None = None
        self._webhook_secret: str | None = None

    def _get_client(self) -> StripeClient:
        """Get or create the Stripe client (lazy initialization).

        Raises:
            ConfigurationError: If the secret key is not configured.
        """
        if self._client is None:
            secret_key = resolve_secret(self._settings, "stripe_secret_key")
            self._client = StripeClient(
                secret_key,
                stripe_version=self._settings.stripe_api_version,
                max_network_retries=self._settings.stripe_max_network_retries,
                http_client=stripe.RequestsClient(timeout=self._settings.stripe_timeout_seconds),
            )
            logger.info(
                "Stripe client initialized (environment=%s, live=%s)",
                self._settings.environment,
                self._settings.is_live_mode,
            )
        return self._client

    def _get_webhook_secret(self) -> str:
        if self._webhook_secret is None:
            self._webhook_secret = resolve_secret(self._settings, "stripe_webhook_secret")
        return self._webhook_secret

    def create_checkout_session(self, request: CheckoutSessionRequest) -> dict[str, Any]:
        """Create a Checkout Session with a destination charge.

        The destination and application fee are set on payment_intent_data
        so the split happens on the PaymentIntent at settlement.

        Args:
            request: Fully resolved session request.

        Returns:
            Dict with session details:
                - session_id: Stripe checkout session ID
                - checkout_url: URL to redirect the buyer
                - expires_at: When the session expires

        Raises:
            UpstreamUnavailableError: Transient Stripe failure.
            UpstreamRejectedError: Stripe refused the request.
        """
        client = self._get_client()

        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [request.line_item.to_stripe()],
            "custom_fields": [
                {
                    "key": STUDENT_NAME_FIELD,
                    "label": {"type": "custom", "custom": "Student name"},
                    "type": "text",
                    "optional": bool(request.student_name),
                }
            ],
            "payment_intent_data": {
                "transfer_data": {"destination": request.destination_account_id},
                "application_fee_amount": request.fee_amount,
            },
            "metadata": request.metadata,
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "allow_promotion_codes": True,
            "expires_at": int(datetime.now(timezone.utc).timestamp())
            + self._settings.session_lifetime_seconds,
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email

        options: dict[str, Any] = {}
        if request.idempotency_key:
            options["idempotency_key"] = request.idempotency_key

        try:
            session = client.checkout.sessions.create(params=params, options=options)
        except stripe.StripeError as e:
            logger.error(
                "Stripe checkout session creation failed: %s (code: %s)",
                str(e),
                getattr(e, "code", None),
            )
            raise map_stripe_error(e, "create checkout session") from e

        logger.info(
            "Checkout session created: %s (destination=%s, fee=%d)",
            session.id,
            request.destination_account_id,
            request.fee_amount,
        )

        expires_at = getattr(session, "expires_at", None)
        return {
            "session_id": session.id,
            "checkout_url": session.url,
            "expires_at": (
                datetime.fromtimestamp(expires_at, tz=timezone.utc) if expires_at else None
            ),
        }

    def retrieve_session(
        self,
        session_id: str,
        *,
        expand: Sequence[str] = ("line_items",),
    ) -> Any:
        """Retrieve a Checkout Session, expanding the given fields.

        Returns:
            The session object (a dict-like StripeObject).

        Raises:
            NotFoundError: No such session.
            UpstreamUnavailableError / UpstreamRejectedError: Other failures.
        """
        client = self._get_client()
        try:
            return client.checkout.sessions.retrieve(
                session_id,
                params={"expand": list(expand)},
            )
        except stripe.InvalidRequestError as e:
            if getattr(e, "code", None) == "resource_missing":
                raise NotFoundError(f"Checkout session {session_id} not found") from e
            raise map_stripe_error(e, "retrieve checkout session") from e
        except stripe.StripeError as e:
            logger.error("Stripe session retrieval failed for %s: %s", session_id, str(e))
            raise map_stripe_error(e, "retrieve checkout session") from e

    def get_price_unit_amount(self, price_id: str) -> int | None:
        """Fetch the unit amount of a Stripe Price, in cents.

        Returns:
            The unit amount, or None for a missing price or one without a
            fixed amount (e.g. tiered or customer-chosen).

        Raises:
            UpstreamUnavailableError / UpstreamRejectedError: Stripe failures.
        """
        client = self._get_client()
        try:
            price = client.prices.retrieve(price_id)
        except stripe.InvalidRequestError as e:
            if getattr(e, "code", None) == "resource_missing":
                logger.warning("Stripe price not found: %s", price_id)
                return None
            raise map_stripe_error(e, "retrieve price") from e
        except stripe.StripeError as e:
            logger.error("Stripe price retrieval failed for %s: %s", price_id, str(e))
            raise map_stripe_error(e, "retrieve price") from e

        unit_amount = getattr(price, "unit_amount", None)
        if isinstance(unit_amount, int) and not isinstance(unit_amount, bool):
            return unit_amount
        return None

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.

        Returns:
            Parsed Stripe event dictionary.

        Raises:
            AuthenticationError: Signature, timestamp or payload rejected.
                The message carries the raw verification reason.
        """
        webhook_secret = self._get_webhook_secret()

        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                webhook_secret,
                tolerance=self._settings.webhook_tolerance_seconds,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise AuthenticationError(f"Webhook Error: {e}") from e
        except ValueError as e:
            logger.warning("Invalid webhook payload: %s", str(e))
            raise AuthenticationError(f"Webhook Error: {e}") from e

        logger.info("Webhook signature verified for event: %s", event["id"])
        return dict(event)


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance (singleton pattern).

    Returns:
        StripeService: Shared service instance.
    """
    return StripeService()
