"""
Decimal helpers shared by the ledger services.

Money never goes through binary floating point: inputs are parsed straight
into ``Decimal`` and quantized to cents only when a value is stored.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..exceptions import InvalidInput

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")
MAX_AMOUNT = Decimal("1000000000000")  # 1e12 exclusive upper bound


def to_decimal(value, field: str = "amount") -> Decimal:
    """Parse ``value`` into a finite Decimal or raise ``InvalidInput``."""
    if isinstance(value, bool) or value is None:
        raise InvalidInput(f"{field} is required", code="invalid_amount", field=field)
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"{field} must be a number", code="invalid_amount", field=field)
    if not result.is_finite():
        raise InvalidInput(f"{field} must be finite", code="invalid_amount", field=field)
    return result


def parse_positive_amount(value, field: str = "amount") -> Decimal:
    """Amounts written to the ledger: finite, > 0 and < 1e12."""
    amount = to_decimal(value, field)
    # Rounded before the sign check: "0.004" would otherwise be stored as 0.00.
    if -MAX_AMOUNT < amount < MAX_AMOUNT:
        amount = quantize(amount)
    if amount <= ZERO or amount >= MAX_AMOUNT:
        raise InvalidInput(
            f"{field} must be greater than 0 and lower than 1e12",
            code="invalid_amount",
            field=field,
            value=str(amount),
        )
    return amount


def parse_percentage(value, field: str, allow_none: bool = True):
    if value is None and allow_none:
        return None
    pct = to_decimal(value, field)
    if pct < ZERO or pct > HUNDRED:
        raise InvalidInput(f"{field} must be between 0 and 100", field=field)
    return pct


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_label(label, max_length: int = 255) -> str:
    """Trim, collapse inner whitespace and cut to ``max_length``."""
    return re.sub(r"\s+", " ", (label or "").strip())[:max_length]
