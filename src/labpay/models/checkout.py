"""Checkout session models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PriceData(BaseModel):
    """Inline price for a line item without a Stripe Price reference."""

    model_config = ConfigDict(strict=True)

    currency: str = Field(default="usd", description="ISO currency code, lowercase")
    unit_amount: int = Field(..., gt=0, description="Amount in cents")
    product_name: str = Field(..., description="Line item display name")


class LineItem(BaseModel):
    """A single Checkout line item: either a price reference or inline price data."""

    model_config = ConfigDict(strict=True)

    price: str | None = Field(default=None, description="Stripe Price ID")
    price_data: PriceData | None = None
    quantity: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _exactly_one_price(self) -> "LineItem":
        if (self.price is None) == (self.price_data is None):
            raise ValueError("Line item needs exactly one of price or price_data")
        return self

    def to_stripe(self) -> dict:
        """Render the line item in Stripe's create-session shape."""
        if self.price is not None:
            return {"price": self.price, "quantity": self.quantity}
        assert self.price_data is not None
        return {
            "quantity": self.quantity,
            "price_data": {
                "currency": self.price_data.currency,
                "unit_amount": self.price_data.unit_amount,
                "product_data": {"name": self.price_data.product_name},
            },
        }


class CheckoutSessionRequest(BaseModel):
    """Everything needed to create a destination-charge Checkout Session.

    fee_amount is computed once, before this object is built, and never
    re-derived afterwards.
    """

    model_config = ConfigDict(strict=True)

    line_item: LineItem
    fee_amount: int = Field(..., ge=0, description="Platform fee in cents")
    destination_account_id: str = Field(..., description="Coach's Stripe Connect account")
    metadata: dict[str, str] = Field(default_factory=dict)
    success_url: str
    cancel_url: str
    customer_email: str | None = None
    student_name: str | None = None
    idempotency_key: str | None = None


class CheckoutResult(BaseModel):
    """Outcome of a successful checkout creation."""

    model_config = ConfigDict(strict=True)

    url: str = Field(
        ...,
        description="Stripe-hosted Checkout URL for redirect",
        examples=["https://checkout.stripe.com/c/pay/cs_test_abc123"],
    )
    session_id: str
    fee_amount: int
    expires_at: datetime | None = None
