from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


@dataclass(frozen=True)
class FeeSplit:
    amount_charged: int
    platform_fee: int
    amount_transferred: int


def compute_fee_split(total_price: int, fee_percent: Decimal | str | int | float) -> FeeSplit:
    """
    Split a total (in minor units) into the platform fee and the lender's share.

    The fee is rounded half-up to a whole minor unit and the transfer is the
    remainder, so ``platform_fee + amount_transferred == total_price`` always holds.
    """

    percent = Decimal(str(fee_percent))
    if percent < 0 or percent > 100:
        raise ValueError("Fee percent must be between 0 and 100.")

    platform_fee = int(
        (Decimal(total_price) * percent / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return FeeSplit(
        amount_charged=total_price,
        platform_fee=platform_fee,
        amount_transferred=total_price - platform_fee,
    )
