"""Catalog models: flight labs (listings) and coaches (payees).

Both are read-only projections of CMS items. They are rebuilt from the raw
item on every cache miss and never written back by this service.
"""

from pydantic import BaseModel, ConfigDict, Field


class Listing(BaseModel):
    """A sellable flight lab.

    Amounts are stored in minor currency units (cents).
    """

    model_config = ConfigDict(strict=True, frozen=True)

    id: str = Field(..., description="CMS item ID", examples=["64f1c2d3e4a5b6c7d8e9f0a1"])
    slug: str | None = Field(default=None, description="CMS item slug")
    title: str = Field(..., description="Display name")
    price_id: str | None = Field(
        default=None,
        description="Stripe Price reference (price_xxx); preferred over price_cents",
        examples=["price_1ABC123DEF456"],
    )
    price_cents: int | None = Field(
        default=None,
        description="Inline unit price in cents, used when no price_id is set",
    )
    seats_remaining: int | None = Field(
        default=None,
        description="Remaining seats; None means unlimited",
    )
    payee_ref: str | None = Field(
        default=None,
        description="CMS item ID of the coach receiving the destination share",
    )
    success_path: str | None = Field(default=None, description="Success redirect path or URL")
    cancel_path: str | None = Field(default=None, description="Cancel redirect path or URL")
    meet_url: str | None = Field(default=None, description="Video meeting link")
    description: str | None = Field(default=None, description="Long description")
    sessions_json: str = Field(default="[]", description="JSON-encoded session schedule")


class Payee(BaseModel):
    """A coach record from the CMS."""

    model_config = ConfigDict(strict=True, frozen=True)

    id: str
    name: str | None = None
    email: str | None = None
    instagram: str | None = None
    facebook: str | None = None
    profile_pic: str | None = None
    connected_account_id: str | None = Field(
        default=None,
        description="Stripe Connect account ID (acct_xxx) if validly formatted",
        examples=["acct_1ABC123DEF456GHI"],
    )
