"""Post-checkout lookups used by the success page.

Both operations start from a Checkout Session ID (the value Stripe
substitutes into the success URL) and read back the flight lab ID stored in
session metadata at creation time.
"""

import json
from typing import Any, Mapping

from labpay.models.errors import (
    NotFoundError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
    ValidationError,
)
from labpay.services.catalog import CatalogResolver, PayeeResolver
from labpay.services.stripe_service import STUDENT_NAME_FIELD, StripeService
from labpay.utils.logging import get_logger
from labpay.utils.validation import is_valid_session_id

logger = get_logger(__name__)

# Tried in order; older sessions used different key spellings
LAB_ID_METADATA_KEYS: tuple[str, ...] = ("flight_lab_id", "lab_id", "flightLabId")


def _lab_id_from_metadata(metadata: Mapping[str, Any]) -> str | None:
    for key in LAB_ID_METADATA_KEYS:
        value = metadata.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _student_name(session: Mapping[str, Any]) -> str | None:
    for field in session.get("custom_fields") or []:
        if field.get("key") == STUDENT_NAME_FIELD:
            return (field.get("text") or {}).get("value") or None
    return None


def _parse_sessions(raw: str) -> list[Any]:
    try:
        sessions = json.loads(raw)
    except ValueError:
        return []
    return sessions if isinstance(sessions, list) else []


class SessionLookupService:
    """Map Checkout Sessions back to flight labs and coaches."""

    def __init__(
        self,
        stripe_service: StripeService,
        catalog: CatalogResolver,
        payees: PayeeResolver,
    ) -> None:
        self._stripe = stripe_service
        self._catalog = catalog
        self._payees = payees

    def _retrieve(self, session_id: str | None, expand: tuple[str, ...]) -> Any:
        session_id = (session_id or "").strip()
        if not session_id:
            raise ValidationError("Missing session_id parameter")
        if not is_valid_session_id(session_id):
            raise ValidationError("Invalid session_id format")
        return self._stripe.retrieve_session(session_id, expand=expand)

    def lab_id_for_session(self, session_id: str | None) -> str:
        """Return the flight lab ID recorded on a Checkout Session.

        Raises:
            ValidationError: Missing or malformed session ID.
            NotFoundError: Unknown session, or no lab ID in its metadata.
        """
        session = self._retrieve(session_id, expand=())
        lab_id = _lab_id_from_metadata(session.get("metadata") or {})
        if lab_id is None:
            raise NotFoundError("No lab linked to this session")
        return lab_id

    def checkout_details(self, session_id: str | None) -> dict[str, Any]:
        """Summarize a completed checkout for the success page.

        Coach lookup failures degrade to coach=None rather than failing the
        whole response.

        Returns:
            Dict with "session", "lab" and "coach" sections.
        """
        session = self._retrieve(session_id, expand=("line_items", "payment_intent"))
        lab_id = _lab_id_from_metadata(session.get("metadata") or {})
        if lab_id is None:
            raise NotFoundError("No lab linked to this session")

        listing = self._catalog.resolve_listing(lab_id=lab_id)

        coach = None
        try:
            payee = self._payees.get_payee(listing.payee_ref)
        except (UpstreamUnavailableError, UpstreamRejectedError) as e:
            logger.warning("Coach lookup failed for lab %s: %s", lab_id, e.message)
            payee = None
        if payee is not None:
            coach = {
                "name": payee.name,
                "email": payee.email,
                "instagram": payee.instagram,
                "facebook": payee.facebook,
                "profilePic": payee.profile_pic,
            }

        customer_details = session.get("customer_details") or {}
        return {
            "session": {
                "id": session.get("id"),
                "amount_total": session.get("amount_total"),
                "currency": session.get("currency"),
                "customer_email": customer_details.get("email") or session.get("customer_email"),
                "customer_name": _student_name(session),
            },
            "lab": {
                "id": listing.id,
                "title": listing.title,
                "description": listing.description,
                "meetUrl": listing.meet_url,
                "sessions": _parse_sessions(listing.sessions_json),
                "seatsRemaining": listing.seats_remaining,
            },
            "coach": coach,
        }
