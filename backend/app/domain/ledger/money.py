"""
Money helpers.

All amounts are Decimal, quantized to cents, and fit NUMERIC(15, 2).
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from backend.app.core.exceptions import InvalidAmountError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
MAX_DIGITS = 15


def to_money(value: Any) -> Decimal:
    """Convert to Decimal and round half-up to cents."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Any, field_name: str = "amount") -> Decimal:
    """
    Validate a caller-supplied positive amount without rounding it.

    Raises:
        InvalidAmountError: if the amount is not a number, not positive,
            has more than 2 decimal places, or more than 15 digits.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(f"{field_name} is not a valid number", value)

    if not amount.is_finite():
        raise InvalidAmountError(f"{field_name} is not a valid number", value)
    if amount <= 0:
        raise InvalidAmountError(f"{field_name} must be positive", amount)
    if amount.as_tuple().exponent < -2 and amount != amount.quantize(CENT):
        raise InvalidAmountError(f"{field_name} exceeds maximum decimal places (2)", amount)

    amount = amount.quantize(CENT)
    if len(amount.as_tuple().digits) > MAX_DIGITS:
        raise InvalidAmountError(f"{field_name} exceeds maximum precision ({MAX_DIGITS} digits)", amount)
    return amount
