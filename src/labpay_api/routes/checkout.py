"""Checkout endpoint.

Creates a Stripe Checkout Session for one seat in a flight lab and returns
the hosted URL the browser should redirect to. Internal identifiers such as
the session ID are not returned.
"""

from fastapi import APIRouter, Depends

from labpay.models.errors import ErrorResponse
from labpay.services.checkout import CheckoutService
from labpay_api.dependencies import get_checkout_service
from labpay_api.models.checkout import CreateCheckoutRequest, CreateCheckoutResponse

router = APIRouter(tags=["checkout"])


@router.post(
    "/create-checkout",
    summary="Create a Checkout Session",
    description="""
Create a Stripe Checkout Session for a flight lab.

The platform fee is attached to the PaymentIntent as an application fee and
the remainder is transferred to the coach's connected account. A seat is
held for the lifetime of the session.
""",
    response_model=CreateCheckoutResponse,
    responses={
        200: {"description": "Session created", "model": CreateCheckoutResponse},
        400: {"description": "Invalid request or coach not payable", "model": ErrorResponse},
        404: {"description": "Flight lab not found", "model": ErrorResponse},
        409: {"description": "Sold out", "model": ErrorResponse},
        500: {"description": "Configuration or transient upstream failure", "model": ErrorResponse},
        502: {"description": "Upstream rejected the request", "model": ErrorResponse},
    },
)
def create_checkout(
    body: CreateCheckoutRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
) -> CreateCheckoutResponse:
    """Create a Checkout Session and return its redirect URL."""
    result = checkout.create_checkout(
        lab_id=body.lab_id,
        lab_slug=body.lab_slug,
        student_name=body.student_name,
        student_email=body.student_email,
    )
    return CreateCheckoutResponse(url=result.url)
