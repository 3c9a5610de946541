"""Integer money and rate utilities.

Prices, face values and trade totals are int in the ledger's minor currency
unit. Coupon rates are int basis points internally (8.5% -> 850 bps) and a
percentage on the HTTP surface. No float arithmetic on stored values.
"""

from decimal import ROUND_HALF_UP, Decimal

MAX_COUPON_BPS = 10_000
# Every stored amount is a PostgreSQL BIGINT
MAX_BIGINT = 2**63 - 1


def percent_to_bps(rate_percent: float | Decimal | int) -> int:
    """8.5 -> 850. Rounds half-up at the second decimal."""
    bps = (Decimal(str(rate_percent)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(bps)


def bps_to_percent(bps: int) -> float:
    """850 -> 8.5 (display only)."""
    return bps / 100


def total_amount(quantity: int, price_per_bond: int) -> int:
    """Trade total in minor units. Exact for ints of any size."""
    return quantity * price_per_bond
