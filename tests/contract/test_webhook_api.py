"""Contract tests for POST /api/stripe-webhook."""

import json
import time

import httpx
import pytest

from tests.helpers import event_bytes, sign_payload, stripe_event

pytestmark = pytest.mark.contract

ENDPOINT = "/api/stripe-webhook"


def _post(api_client, payload: bytes, signature: str | None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return api_client.post(ENDPOINT, content=payload, headers=headers)


class TestSettlementForwarding:
    """Completed checkouts are forwarded before Stripe gets a 200."""

    def test_forwarded(self, api_client, automation_endpoint):
        payload = event_bytes(stripe_event())

        response = _post(api_client, payload, sign_payload(payload))

        assert response.status_code == 200
        assert response.json() == {
            "received": True,
            "forwarded": True,
            "event_id": "evt_1ABC123DEF456",
        }
        forwarded = automation_endpoint.requests[0]
        assert forwarded.headers["X-Bridge-Secret"] == "bridge_secret"
        assert forwarded.headers["X-Event-Id"] == "evt_1ABC123DEF456"
        body = json.loads(forwarded.content)
        assert body["event_type"] == "checkout.session.completed"
        assert body["session"]["customer_email"] == "student@example.com"
        assert body["session"]["line_items"][0]["price"]["id"] == "price_123"

    def test_automation_unreachable_is_500(self, api_client, automation_endpoint):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        automation_endpoint.respond = refuse
        payload = event_bytes(stripe_event())

        response = _post(api_client, payload, sign_payload(payload))

        assert response.status_code == 500
        assert response.json() == {
            "received": True,
            "forwarded": False,
            "event_id": "evt_1ABC123DEF456",
            "error": "Failed to forward to automation service",
        }

    def test_automation_error_status_is_500(self, api_client, automation_endpoint):
        automation_endpoint.respond = lambda request: httpx.Response(503)
        payload = event_bytes(stripe_event())

        response = _post(api_client, payload, sign_payload(payload))

        assert response.status_code == 500
        assert response.json()["forwarded"] is False

    def test_redelivery_is_duplicate(self, api_client, automation_endpoint):
        payload = event_bytes(stripe_event())
        _post(api_client, payload, sign_payload(payload))

        response = _post(api_client, payload, sign_payload(payload))

        assert response.status_code == 200
        assert response.json() == {
            "received": True,
            "duplicate": True,
            "event_id": "evt_1ABC123DEF456",
        }
        assert len(automation_endpoint.requests) == 1

    def test_redelivery_after_failure_forwards(self, api_client, automation_endpoint):
        automation_endpoint.respond = lambda request: httpx.Response(500)
        payload = event_bytes(stripe_event())
        assert _post(api_client, payload, sign_payload(payload)).status_code == 500

        automation_endpoint.respond = lambda request: httpx.Response(200)
        response = _post(api_client, payload, sign_payload(payload))

        assert response.status_code == 200
        assert response.json()["forwarded"] is True

    def test_other_events_acknowledged(self, api_client, automation_endpoint):
        payload = event_bytes(stripe_event("customer.created", event_id="evt_other"))

        response = _post(api_client, payload, sign_payload(payload))

        assert response.status_code == 200
        assert response.json() == {"received": True, "event_id": "evt_other"}
        assert automation_endpoint.requests == []


class TestSignatureRejection:
    """Unverified deliveries get a 400 and forward nothing."""

    def test_missing_header(self, api_client, automation_endpoint):
        response = _post(api_client, event_bytes(stripe_event()), None)

        assert response.status_code == 400
        assert response.json()["error"] == "Missing stripe-signature header"
        assert automation_endpoint.requests == []

    def test_tampered_body(self, api_client, automation_endpoint):
        payload = event_bytes(stripe_event())
        signature = sign_payload(payload)

        response = _post(api_client, payload.replace(b"lab_1", b"lab_9"), signature)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Webhook Error:")
        assert automation_endpoint.requests == []

    def test_stale_timestamp(self, api_client, automation_endpoint):
        payload = event_bytes(stripe_event())

        response = _post(api_client, payload, sign_payload(payload, timestamp=int(time.time()) - 3600))

        assert response.status_code == 400
        assert automation_endpoint.requests == []
