"""Catalog and payee resolution over the CMS.

CatalogResolver turns a flight lab ID or slug into a Listing. PayeeResolver
finds a coach's Stripe Connect account, tolerating the legacy field names
the coach collection has used over time.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from labpay.models.errors import NotFoundError, ValidationError
from labpay.models.listing import Listing, Payee
from labpay.services.content_store import ContentStoreClient
from labpay.utils.logging import get_logger
from labpay.utils.validation import is_valid_connected_account_id

logger = get_logger(__name__)

DEFAULT_LAB_NAME = "Flight Lab"

# Flight lab collection field names
LAB_FIELDS = {
    "name": "name",
    "price_id": "price_id",
    "total_price": "total-price-per-student-per-flight-lab",
    "max_participants": "maximum-number-of-participants",
    "coach": "coach",
    "success_url": "success_url",
    "cancel_url": "cancel_url",
    "meet_url": "google-meet-url",
    "sessions_json": "sessions-json",
    "description": "full-description",
}

# Coach collection field names
COACH_FIELDS = {
    "name": "name",
    "email": "email-field",
    "instagram": "instagram-profile",
    "facebook": "facebook-profile",
    "profile_pic": "profile-pic",
}

# Tried in order; the first validly formatted value wins. Add new legacy
# names here.
CONNECTED_ACCOUNT_FIELDS: tuple[str, ...] = (
    "coach-stripe-account-id",
    "stripe-account-id",
    "coach_stripe_account_id",
    "stripe_account_id",
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def dollars_to_cents(value: Any) -> int | None:
    """Convert a CMS major-unit price to cents (round half up)."""
    if not _is_number(value):
        return None
    cents = (Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def map_item_to_listing(item: dict[str, Any]) -> Listing:
    """Map a normalized CMS item to a Listing."""
    f = item.get("fieldData") or {}
    seats = f.get(LAB_FIELDS["max_participants"])
    sessions_json = f.get(LAB_FIELDS["sessions_json"])

    return Listing(
        id=str(item["id"]),
        slug=_str_or_none(item.get("slug")),
        title=_str_or_none(f.get(LAB_FIELDS["name"])) or DEFAULT_LAB_NAME,
        price_id=_str_or_none(f.get(LAB_FIELDS["price_id"])),
        price_cents=dollars_to_cents(f.get(LAB_FIELDS["total_price"])),
        seats_remaining=int(seats) if _is_number(seats) else None,
        payee_ref=_str_or_none(f.get(LAB_FIELDS["coach"])),
        success_path=_str_or_none(f.get(LAB_FIELDS["success_url"])),
        cancel_path=_str_or_none(f.get(LAB_FIELDS["cancel_url"])),
        meet_url=_str_or_none(f.get(LAB_FIELDS["meet_url"])),
        description=_str_or_none(f.get(LAB_FIELDS["description"])),
        sessions_json=sessions_json if isinstance(sessions_json, str) else "[]",
    )


def find_connected_account_id(field_data: dict[str, Any]) -> str | None:
    """Return the first validly formatted connected account ID, if any."""
    for field in CONNECTED_ACCOUNT_FIELDS:
        value = field_data.get(field)
        if is_valid_connected_account_id(value):
            return value
    return None


class CatalogResolver:
    """Resolve flight labs by ID or slug."""

    def __init__(self, content_store: ContentStoreClient, collection_id: str) -> None:
        self._store = content_store
        self._collection_id = collection_id

    def resolve_listing(
        self,
        *,
        lab_id: str | None = None,
        lab_slug: str | None = None,
    ) -> Listing:
        """Fetch a listing by ID (preferred) or slug.

        Raises:
            ValidationError: Neither an ID nor a slug was given.
            NotFoundError: No such lab.
            UpstreamUnavailableError / UpstreamRejectedError: CMS failures.
        """
        if lab_id:
            item = self._store.get_item(self._collection_id, lab_id)
        elif lab_slug:
            found = self._store.find_item_by_slug(self._collection_id, lab_slug)
            if found is None:
                raise NotFoundError("Flight Lab not found")
            item = found
        else:
            raise ValidationError("Missing labId or labSlug")

        return map_item_to_listing(item)


class PayeeResolver:
    """Resolve coach records and their Stripe Connect accounts."""

    def __init__(self, content_store: ContentStoreClient, collection_id: str) -> None:
        self._store = content_store
        self._collection_id = collection_id

    def _field_data(self, payee_ref: str) -> dict[str, Any]:
        item = self._store.get_item(self._collection_id, payee_ref)
        return item.get("fieldData") or {}

    def resolve_payee_account(self, payee_ref: str | None) -> str | None:
        """Return the coach's connected account ID, or None.

        None must be treated by checkout as a hard validation failure.
        """
        if not payee_ref:
            return None

        try:
            field_data = self._field_data(payee_ref)
        except NotFoundError:
            logger.warning("Coach item not found: %s", payee_ref)
            return None

        account_id = find_connected_account_id(field_data)
        if account_id is None:
            logger.warning(
                "Coach Stripe account ID not found: coach=%s available_fields=%s",
                payee_ref,
                sorted(field_data),
            )
        return account_id

    def get_payee(self, payee_ref: str | None) -> Payee | None:
        """Return the full coach record, or None if absent."""
        if not payee_ref:
            return None

        try:
            f = self._field_data(payee_ref)
        except NotFoundError:
            return None

        picture = f.get(COACH_FIELDS["profile_pic"])
        return Payee(
            id=payee_ref,
            name=_str_or_none(f.get(COACH_FIELDS["name"])),
            email=_str_or_none(f.get(COACH_FIELDS["email"])),
            instagram=_str_or_none(f.get(COACH_FIELDS["instagram"])),
            facebook=_str_or_none(f.get(COACH_FIELDS["facebook"])),
            profile_pic=_str_or_none(picture.get("url")) if isinstance(picture, dict) else None,
            connected_account_id=find_connected_account_id(f),
        )
