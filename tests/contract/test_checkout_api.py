"""Contract tests for POST /api/create-checkout."""

import pytest
import stripe

from tests.helpers import COACH_COLLECTION, LAB_COLLECTION, make_coach_item, make_lab_item

pytestmark = pytest.mark.contract

ENDPOINT = "/api/create-checkout"


class TestCreateCheckoutSuccess:
    """A payable lab yields a hosted checkout URL."""

    def test_returns_url_only(self, api_client):
        response = api_client.post(ENDPOINT, json={"labId": "lab_1"})

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.com/c/pay/cs_test_abc123"}

    def test_destination_charge_with_platform_fee(self, api_client, stripe_client):
        api_client.post(
            ENDPOINT,
            json={"labId": "lab_1", "studentName": "Sam Student", "studentEmail": "sam@example.com"},
        )

        params = stripe_client.checkout.sessions.create.call_args.kwargs["params"]
        assert params["payment_intent_data"]["application_fee_amount"] == 2700
        assert params["payment_intent_data"]["transfer_data"]["destination"] == "acct_validformat123456"
        assert params["line_items"][0]["price_data"]["unit_amount"] == 15000
        assert params["customer_email"] == "sam@example.com"
        assert params["metadata"]["student_name"] == "Sam Student"
        assert "{CHECKOUT_SESSION_ID}" in params["success_url"]

    def test_slug_lookup(self, api_client):
        response = api_client.post(ENDPOINT, json={"labSlug": "spring-flight-lab"})
        assert response.status_code == 200

    def test_correlation_id_echoed(self, api_client):
        response = api_client.post(
            ENDPOINT,
            json={"labId": "lab_1"},
            headers={"X-Correlation-ID": "corr-123"},
        )
        assert response.headers["X-Correlation-ID"] == "corr-123"

    def test_malformed_correlation_id_replaced(self, api_client):
        response = api_client.post(
            ENDPOINT,
            json={"labId": "lab_1"},
            headers={"X-Correlation-ID": "corr 123 <script>"},
        )

        echoed = response.headers["X-Correlation-ID"]
        assert echoed != "corr 123 <script>"
        assert len(echoed) == 36


class TestCreateCheckoutErrors:
    """Error responses carry {error, code} with the mapped status."""

    def test_sold_out_is_409(self, cms, api_client, stripe_client):
        cms.add(LAB_COLLECTION, make_lab_item("lab_full", slug="full", seats=0))

        response = api_client.post(ENDPOINT, json={"labId": "lab_full"})

        assert response.status_code == 409
        assert response.json() == {"error": "This Flight Lab is sold out", "code": "CONFLICT"}
        stripe_client.checkout.sessions.create.assert_not_called()

    def test_last_seat_held_is_409(self, api_client):
        assert api_client.post(ENDPOINT, json={"labId": "lab_1"}).status_code == 200
        assert api_client.post(ENDPOINT, json={"labId": "lab_1"}).status_code == 409

    def test_missing_connect_id_is_400(self, cms, api_client, stripe_client):
        cms.add(COACH_COLLECTION, make_coach_item("coach_2"))
        cms.add(LAB_COLLECTION, make_lab_item("lab_2", slug="unpaid", coach="coach_2"))

        response = api_client.post(ENDPOINT, json={"labId": "lab_2"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "coach-stripe-account-id" in body["error"]
        stripe_client.checkout.sessions.create.assert_not_called()

    def test_missing_identifiers_is_400(self, api_client):
        response = api_client.post(ENDPOINT, json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing labId or labSlug"

    def test_unknown_lab_is_404(self, api_client):
        assert api_client.post(ENDPOINT, json={"labId": "lab_404"}).status_code == 404

    def test_wrong_field_type_is_400(self, api_client):
        response = api_client.post(ENDPOINT, json={"labId": 123})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_malformed_json_is_400(self, api_client):
        response = api_client.post(
            ENDPOINT,
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_stripe_rejection_is_502_without_internals(self, api_client, stripe_client):
        stripe_client.checkout.sessions.create.side_effect = stripe.InvalidRequestError(
            "No such destination: acct_validformat123456", "destination", http_status=400
        )

        response = api_client.post(ENDPOINT, json={"labId": "lab_1"})

        assert response.status_code == 502
        assert response.json() == {
            "error": "A dependency rejected the request",
            "code": "UPSTREAM_REJECTED",
        }

    def test_stripe_outage_is_500(self, api_client, stripe_client):
        stripe_client.checkout.sessions.create.side_effect = stripe.APIConnectionError("down")

        response = api_client.post(ENDPOINT, json={"labId": "lab_1"})

        assert response.status_code == 500
        assert response.json()["code"] == "UPSTREAM_UNAVAILABLE"

    def test_seat_released_after_stripe_failure(self, api_client, stripe_client):
        stripe_client.checkout.sessions.create.side_effect = stripe.APIConnectionError("down")
        assert api_client.post(ENDPOINT, json={"labId": "lab_1"}).status_code == 500

        stripe_client.checkout.sessions.create.side_effect = None
        assert api_client.post(ENDPOINT, json={"labId": "lab_1"}).status_code == 200

    def test_unexpected_error_is_generic_500(self, api_client, stripe_client):
        stripe_client.checkout.sessions.create.side_effect = RuntimeError("boom")

        response = api_client.post(ENDPOINT, json={"labId": "lab_1"})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
