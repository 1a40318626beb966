# storefront/utils/money.py
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal) -> Decimal:
    """Round once, at the aggregate. Line totals stay unrounded."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
