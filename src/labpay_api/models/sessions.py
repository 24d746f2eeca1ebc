"""Post-checkout lookup response models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SessionToLabResponse(BaseModel):
    """Flight lab linked to a Checkout Session."""

    model_config = ConfigDict(strict=True, populate_by_name=True)

    lab_id: str = Field(..., alias="labId", examples=["64f1c0ffee0123456789abcd"])


class CheckoutDetailsResponse(BaseModel):
    """Session, lab and coach summary for the success page."""

    session: dict[str, Any]
    lab: dict[str, Any]
    coach: dict[str, Any] | None = None
