# orders/services/money.py

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def money(v) -> Decimal:
    """
    Normalize any amount (str/int/Decimal/None) to a 2dp Decimal.
    Floats go through str() so 0.1 stays 0.10.
    """
    try:
        return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {v!r}") from exc
