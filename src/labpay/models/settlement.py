"""Settlement event models.

SettlementPayload is the normalized body forwarded to the automation
endpoint. It is built from a freshly retrieved Checkout Session rather than
the webhook body, which may omit expanded line items.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LinePrice(BaseModel):
    """Price snapshot for a purchased line item."""

    id: str | None = None
    unit_amount: int | None = None
    currency: str | None = None


class LineItemProjection(BaseModel):
    """Reduced view of a Checkout line item."""

    description: str | None = None
    quantity: int | None = None
    amount_total: int | None = None
    amount_subtotal: int | None = None
    price: LinePrice | None = None


class SessionProjection(BaseModel):
    """Reduced view of a completed Checkout Session."""

    id: str
    customer_details: dict[str, Any] | None = None
    customer_email: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    line_items: list[LineItemProjection] = Field(default_factory=list)


class SettlementPayload(BaseModel):
    """Body POSTed to the automation endpoint."""

    event_id: str = Field(..., description="Stripe event ID (evt_xxx)")
    event_type: str = Field(..., examples=["checkout.session.completed"])
    created: int | None = Field(default=None, description="Event creation (unix seconds)")
    session: SessionProjection


class WebhookResponse(BaseModel):
    """Response body returned to Stripe."""

    model_config = ConfigDict(strict=True)

    received: bool = True
    forwarded: bool | None = None
    duplicate: bool | None = None
    event_id: str | None = None
    error: str | None = None


class WebhookOutcome(BaseModel):
    """HTTP status plus body for a single webhook delivery."""

    model_config = ConfigDict(strict=True)

    status_code: int
    body: WebhookResponse
