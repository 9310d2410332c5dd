"""
Money helpers.

All amounts are Decimal quantized to two places with ROUND_HALF_UP.
Values are stored in TEXT columns and only summed in Python.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENTS = Decimal('0.01')
ZERO = Decimal('0.00')


def to_decimal(value) -> Decimal:
    """
    Convert a stored or submitted amount to a two-place Decimal.

    None and empty strings become 0.00. Floats are converted through their
    string form so 0.1 stays 0.10.

    Args:
        value: str, int, float, Decimal or None

    Returns:
        Decimal quantized to cents

    Raises:
        ValueError: If the value is not a number
    """
    if value is None or value == '':
        return ZERO
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f'Invalid amount: {value!r}')
    if not amount.is_finite():
        raise ValueError(f'Invalid amount: {value!r}')
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def money_sum(values) -> Decimal:
    """Sum an iterable of amounts exactly."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total
