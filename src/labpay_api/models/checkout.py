"""Checkout endpoint request/response models."""

from pydantic import BaseModel, ConfigDict, Field


class CreateCheckoutRequest(BaseModel):
    """Request body for POST /api/create-checkout.

    Either labId or labSlug identifies the flight lab; labId wins when both
    are given.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True)

    lab_id: str | None = Field(
        default=None,
        alias="labId",
        max_length=128,
        description="CMS item ID of the flight lab",
        examples=["64f1c0ffee0123456789abcd"],
    )
    lab_slug: str | None = Field(
        default=None,
        alias="labSlug",
        max_length=256,
        description="CMS slug of the flight lab",
        examples=["spring-flight-lab"],
    )
    student_name: str | None = Field(
        default=None,
        alias="studentName",
        max_length=500,
        description="Student name, stored in session metadata",
    )
    student_email: str | None = Field(
        default=None,
        alias="studentEmail",
        max_length=320,
        description="Buyer email, prefilled on the hosted checkout page",
        examples=["student@example.com"],
    )


class CreateCheckoutResponse(BaseModel):
    """Redirect target for the buyer."""

    model_config = ConfigDict(strict=True)

    url: str = Field(
        ...,
        description="Stripe-hosted Checkout URL",
        examples=["https://checkout.stripe.com/c/pay/cs_test_abc123"],
    )
