"""Webhook endpoint for Stripe events.

This endpoint does not require authentication; deliveries are verified with
the Stripe webhook signing secret instead.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from labpay.models.errors import ErrorResponse
from labpay.models.settlement import WebhookResponse
from labpay.services.webhook_handler import SettlementEventForwarder
from labpay_api.dependencies import get_settlement_forwarder

router = APIRouter(tags=["webhooks"])


@router.post(
    "/stripe-webhook",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events. Handles:
- checkout.session.completed: forwards a settlement payload to automation
- checkout.session.expired: releases the session's seat hold

Other event types are acknowledged and ignored.

A 500 response means the forward failed and Stripe should redeliver.
Duplicate deliveries of an already forwarded event return 200 with
`duplicate: true`.
""",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    responses={
        200: {"description": "Event acknowledged", "model": WebhookResponse},
        400: {"description": "Missing or invalid signature", "model": ErrorResponse},
        500: {"description": "Forward failed; Stripe will retry", "model": WebhookResponse},
    },
)
async def handle_stripe_webhook(
    request: Request,
    forwarder: SettlementEventForwarder = Depends(get_settlement_forwarder),
) -> JSONResponse:
    """Verify and process one Stripe delivery."""
    # Signature verification needs the body byte-for-byte
    payload = await request.body()
    signature = request.headers.get("Stripe-Signature")

    outcome = await run_in_threadpool(forwarder.handle, payload, signature)
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.body.model_dump(mode="json", exclude_none=True),
    )
