"""Checkout orchestration.

CheckoutService.create_checkout runs the full checkout pipeline: resolve the
flight lab, gate on seats, resolve the coach's connected account, price the
line item, compute the platform fee, normalize redirect URLs and create the
Stripe Checkout Session. Each step is a hard failure point; errors surface
with the kind raised by that step.
"""

import uuid

from labpay.config import Settings
from labpay.models.checkout import CheckoutResult, CheckoutSessionRequest, LineItem, PriceData
from labpay.models.errors import ConfigurationError, ConflictError, ValidationError
from labpay.models.listing import Listing
from labpay.models.reservation import ReservationToken
from labpay.services.availability import SeatReservations, check_available
from labpay.services.catalog import CatalogResolver, PayeeResolver
from labpay.services.fees import FeePolicy
from labpay.services.stripe_service import StripeService
from labpay.services.urls import build_redirect_urls
from labpay.utils.logging import bind_log_context, get_logger, log_checkout_operation
from labpay.utils.validation import is_valid_email, sanitize_string

logger = get_logger(__name__)

CHECKOUT_KIND = "flight_lab"
MAX_STUDENT_NAME_LENGTH = 100
MAX_METADATA_VALUE_LENGTH = 500

SOLD_OUT_MESSAGE = "This Flight Lab is sold out"
MISSING_CONNECT_ID_MESSAGE = (
    'Coach Stripe Connect ID not found on Coach item (field "coach-stripe-account-id").'
)
NO_PRICE_MESSAGE = (
    'No price configured for this lab (add "price_id" or set '
    '"total-price-per-student-per-flight-lab").'
)


class CheckoutService:
    """Create Stripe Checkout Sessions for flight labs.

    Usage:
        service = CheckoutService(settings, catalog, payees, stripe_svc, seats)
        result = service.create_checkout(lab_id="lab_1", student_email="a@b.co")
        result.url  # redirect the buyer here
    """

    def __init__(
        self,
        settings: Settings,
        catalog: CatalogResolver,
        payees: PayeeResolver,
        stripe_service: StripeService,
        reservations: SeatReservations,
        fee_policy: FeePolicy | None = None,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._payees = payees
        self._stripe = stripe_service
        self._reservations = reservations
        self._fee_policy = fee_policy or FeePolicy.from_settings(settings)

    def create_checkout(
        self,
        *,
        lab_id: str | None = None,
        lab_slug: str | None = None,
        student_name: str | None = None,
        student_email: str | None = None,
    ) -> CheckoutResult:
        """Create a Checkout Session for one seat in a flight lab.

        Args:
            lab_id: CMS item ID (preferred when both are given)
            lab_slug: CMS item slug
            student_name: Optional buyer-supplied student name
            student_email: Optional buyer email, prefilled on the hosted page

        Returns:
            CheckoutResult with the Stripe-hosted redirect URL.

        Raises:
            ValidationError: Bad input, coach not payable, or no usable price.
            NotFoundError: No such flight lab.
            ConflictError: Sold out, or every remaining seat is held.
            ConfigurationError: Bad redirect URLs or a fee above the price.
            UpstreamUnavailableError / UpstreamRejectedError: CMS or Stripe failures.
        """
        lab_id = (lab_id or "").strip() or None
        lab_slug = (lab_slug or "").strip() or None
        if not lab_id and not lab_slug:
            raise ValidationError("Missing labId or labSlug")

        email = (student_email or "").strip() or None
        if email is not None and not is_valid_email(email):
            raise ValidationError("Invalid email format")
        name = sanitize_string(student_name, MAX_STUDENT_NAME_LENGTH) or None

        listing = self._catalog.resolve_listing(lab_id=lab_id, lab_slug=lab_slug)
        bind_log_context(lab_id=listing.id)
        if not check_available(listing):
            log_checkout_operation(logger, "sold_out", lab_id=listing.id)
            raise ConflictError(SOLD_OUT_MESSAGE)

        reservation = self._reserve_seat(listing)
        try:
            result = self._create_session(listing, reservation, name, email)
        except Exception:
            if reservation is not None:
                self._reservations.release(reservation.token)
            raise

        return result

    def _reserve_seat(self, listing: Listing) -> ReservationToken | None:
        """Hold a seat for the lifetime of the session. Unlimited labs skip this."""
        if listing.seats_remaining is None:
            return None
        reservation = self._reservations.reserve(listing.id, listing.seats_remaining)
        if reservation is None:
            log_checkout_operation(logger, "seats_held", lab_id=listing.id)
            raise ConflictError(SOLD_OUT_MESSAGE)
        return reservation

    def _resolve_line_item(self, listing: Listing) -> tuple[LineItem, int]:
        """Build the line item and find the unit amount the fee is based on.

        A Stripe Price reference wins over the CMS price, and its amount is
        fetched from Stripe rather than trusted from the CMS.
        """
        if listing.price_id:
            unit_amount = self._stripe.get_price_unit_amount(listing.price_id)
            if unit_amount is None or unit_amount <= 0:
                raise ValidationError(
                    f"Could not resolve a unit amount for price {listing.price_id}"
                )
            return LineItem(price=listing.price_id), unit_amount

        if listing.price_cents is not None and listing.price_cents > 0:
            line_item = LineItem(
                price_data=PriceData(
                    currency=self._settings.currency,
                    unit_amount=listing.price_cents,
                    product_name=listing.title,
                )
            )
            return line_item, listing.price_cents

        raise ValidationError(NO_PRICE_MESSAGE)

    def _create_session(
        self,
        listing: Listing,
        reservation: ReservationToken | None,
        student_name: str | None,
        student_email: str | None,
    ) -> CheckoutResult:
        account_id = self._payees.resolve_payee_account(listing.payee_ref)
        if account_id is None:
            raise ValidationError(MISSING_CONNECT_ID_MESSAGE)

        line_item, unit_amount = self._resolve_line_item(listing)

        fee = self._fee_policy(unit_amount)
        if fee > unit_amount:
            raise ConfigurationError(
                f"Platform fee {fee} exceeds unit price {unit_amount} for lab {listing.id}"
            )

        success_url, cancel_url = build_redirect_urls(self._settings, listing)

        metadata = {
            "kind": CHECKOUT_KIND,
            "flight_lab_id": listing.id,
            "coach_connect_id": account_id,
            "lab_title": sanitize_string(listing.title, MAX_METADATA_VALUE_LENGTH),
        }
        if reservation is not None:
            metadata["reservation_token"] = reservation.token
        if student_name:
            metadata["student_name"] = student_name

        hold_ref = reservation.token if reservation is not None else uuid.uuid4().hex
        request = CheckoutSessionRequest(
            line_item=line_item,
            fee_amount=fee,
            destination_account_id=account_id,
            metadata=metadata,
            success_url=success_url,
            cancel_url=cancel_url,
            customer_email=student_email,
            student_name=student_name,
            idempotency_key=f"checkout_{listing.id}_{hold_ref}",
        )

        session = self._stripe.create_checkout_session(request)

        log_checkout_operation(
            logger,
            "session_created",
            lab_id=listing.id,
            session_id=session["session_id"],
            amount_cents=unit_amount,
            fee_cents=fee,
        )
        return CheckoutResult(
            url=session["checkout_url"],
            session_id=session["session_id"],
            fee_amount=fee,
            expires_at=session.get("expires_at"),
        )
