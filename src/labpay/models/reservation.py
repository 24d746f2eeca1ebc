"""Seat reservation token model."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ReservationToken(BaseModel):
    """A held seat for one in-flight checkout.

    The hold counts against the listing's capacity until expires_at. Committing
    it can bring expires_at forward. Released holds stop counting immediately.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    token: str = Field(..., description="Opaque hold identifier", examples=["hold_3f9a1c2b7d4e"])
    listing_id: str
    expires_at: datetime
