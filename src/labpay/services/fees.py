"""Platform fee calculation.

The fee is the marketplace's share of a destination charge, in cents. It is
attached to the PaymentIntent as application_fee_amount; the remainder is
routed to the coach's connected account.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from labpay.config import Settings

DEFAULT_FEE_PCT = 0.18


def _to_minor_units(value: Any) -> Decimal | None:
    """Coerce a unit amount to a finite Decimal, or None if unusable."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def compute_fee(
    unit_amount: Any,
    *,
    fee_pct: float = DEFAULT_FEE_PCT,
    fixed_fee_cents: int | None = None,
) -> int:
    """Compute the platform fee for a unit price.

    A fixed override wins unconditionally. Otherwise the percentage is
    applied with round-half-up to whole cents.

    Args:
        unit_amount: Unit price in cents. Zero, None or non-finite yields 0.
        fee_pct: Fee as a fraction of the unit price (0.18 = 18%).
        fixed_fee_cents: Fixed fee override in cents.

    Returns:
        Fee in cents, never negative.
    """
    if fixed_fee_cents is not None:
        return max(0, int(fixed_fee_cents))

    amount = _to_minor_units(unit_amount)
    if amount is None or amount <= 0:
        return 0

    fee = (amount * Decimal(str(fee_pct))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, int(fee))


@dataclass(frozen=True)
class FeePolicy:
    """Fee configuration bound to a compute_fee call."""

    fee_pct: float = DEFAULT_FEE_PCT
    fixed_fee_cents: int | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeePolicy":
        return cls(
            fee_pct=settings.platform_fee_pct,
            fixed_fee_cents=settings.platform_fee_cents,
        )

    def __call__(self, unit_amount: Any) -> int:
        return compute_fee(
            unit_amount,
            fee_pct=self.fee_pct,
            fixed_fee_cents=self.fixed_fee_cents,
        )
