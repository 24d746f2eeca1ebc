"""Builders shared by the unit and contract tests.

- CMS item builders and an httpx MockTransport router for the CMS API
- Stripe event and Checkout Session builders
- Stripe webhook signature helper
"""

import hashlib
import hmac
import json
import time
from typing import Any

import httpx

LAB_COLLECTION = "labs_collection"
COACH_COLLECTION = "coach_collection"
VALID_ACCOUNT_ID = "acct_validformat123456"
WEBHOOK_SECRET = "whsec_test_secret_for_testing"


# === CMS Builders ===


def make_lab_item(
    item_id: str = "lab_1",
    *,
    slug: str = "spring-flight-lab",
    name: str = "Spring Flight Lab",
    price_dollars: float | None = 150,
    price_id: str | None = None,
    seats: int | None = 1,
    coach: str | None = "coach_1",
    **extra_fields: Any,
) -> dict[str, Any]:
    """Build a CMS flight lab item in list-endpoint shape."""
    field_data: dict[str, Any] = {"name": name}
    if price_dollars is not None:
        field_data["total-price-per-student-per-flight-lab"] = price_dollars
    if price_id is not None:
        field_data["price_id"] = price_id
    if seats is not None:
        field_data["maximum-number-of-participants"] = seats
    if coach is not None:
        field_data["coach"] = coach
    field_data.update(extra_fields)
    return {"id": item_id, "slug": slug, "fieldData": field_data}


def make_coach_item(
    item_id: str = "coach_1",
    **field_data: Any,
) -> dict[str, Any]:
    """Build a CMS coach item. Pass field names with dashes via a dict."""
    data = {"name": "Coach Kim", "email-field": "kim@example.com"}
    data.update(field_data)
    return {"id": item_id, "slug": item_id, "fieldData": data}


class CMSRouter:
    """Route CMS API requests to canned items and record every call.

    Usage:
        router = CMSRouter()
        router.add(LAB_COLLECTION, make_lab_item())
        client = ContentStoreClient("token", transport=router.transport(), ...)
    """

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.failures: list[httpx.Response | Exception] = []

    def add(self, collection_id: str, item: dict[str, Any]) -> None:
        self.collections.setdefault(collection_id, []).append(item)

    def fail_next(self, *failures: httpx.Response | Exception) -> None:
        """Queue responses or exceptions returned before normal routing."""
        self.failures.extend(failures)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return failure

        parts = request.url.path.strip("/").split("/")
        # .../collections/{collection}/items[/{item}]
        idx = parts.index("collections")
        collection_id = parts[idx + 1]
        items = self.collections.get(collection_id, [])

        if len(parts) > idx + 3:
            item_id = parts[idx + 3]
            for item in items:
                if item["id"] == item_id:
                    return httpx.Response(200, json=item)
            return httpx.Response(404, json={"message": "Resource not found"})

        offset = int(request.url.params.get("offset", "0"))
        limit = int(request.url.params.get("limit", "100"))
        page = items[offset : offset + limit]
        return httpx.Response(
            200,
            json={"items": page, "pagination": {"offset": offset, "limit": limit, "total": len(items)}},
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


# === Stripe Builders ===


def stripe_event(
    event_type: str = "checkout.session.completed",
    *,
    event_id: str = "evt_1ABC123DEF456",
    session_id: str = "cs_test_abc123",
    metadata: dict[str, str] | None = None,
    created: int = 1_700_000_000,
) -> dict[str, Any]:
    """Build a Stripe event body wrapping a Checkout Session."""
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "metadata": metadata if metadata is not None else {"flight_lab_id": "lab_1"},
            }
        },
    }


def retrieved_session(
    session_id: str = "cs_test_abc123",
    *,
    metadata: dict[str, str] | None = None,
) -> dict[str, Any]:
    """A Checkout Session as returned by retrieve with expanded line_items."""
    return {
        "id": session_id,
        "object": "checkout.session",
        "amount_total": 15000,
        "currency": "usd",
        "customer_email": None,
        "customer_details": {"email": "student@example.com", "name": "Sam Student"},
        "metadata": metadata if metadata is not None else {"flight_lab_id": "lab_1"},
        "custom_fields": [
            {"key": "student_name", "text": {"value": "Sam Student"}},
        ],
        "line_items": {
            "object": "list",
            "data": [
                {
                    "description": "Spring Flight Lab",
                    "quantity": 1,
                    "amount_total": 15000,
                    "amount_subtotal": 15000,
                    "price": {"id": "price_123", "unit_amount": 15000, "currency": "usd"},
                }
            ],
        },
    }


def event_bytes(event: dict[str, Any]) -> bytes:
    return json.dumps(event).encode("utf-8")


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Create a Stripe webhook signature header.

    Stripe signatures use HMAC-SHA256 with format: t={timestamp},v1={signature}
    """
    ts = str(int(time.time()) if timestamp is None else timestamp)
    signed_payload = f"{ts}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={ts},v1={signature}"
