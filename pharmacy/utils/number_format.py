"""Parsing helpers for numeric request values."""
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from pharmacy.exceptions import ValidationError

MONEY = Decimal('0.01')


def quantize_money(value) -> Decimal:
    """Round a monetary amount to cents (half up)."""
    return Decimal(value).quantize(MONEY, rounding=ROUND_HALF_UP)


def parse_decimal(value, field: str, minimum: Decimal = Decimal('0'), allow_equal: bool = True) -> Decimal:
    """
    Parse a JSON number (or numeric string) into a Decimal.

    Args:
        value: Raw value from the request body
        field: Field name used in the error message
        minimum: Lower bound
        allow_equal: Whether the lower bound itself is accepted

    Raises:
        ValidationError: if the value is missing, not numeric, or out of range.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f'{field} must be a number')

    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number')

    if not parsed.is_finite():
        raise ValidationError(f'{field} must be a number')

    if parsed < minimum or (not allow_equal and parsed == minimum):
        comparison = '>=' if allow_equal else '>'
        raise ValidationError(f'{field} must be {comparison} {minimum}')

    return parsed


def parse_money(value, field: str, positive: bool = False) -> Decimal:
    """Parse a non-negative (or strictly positive) amount rounded to cents."""
    return quantize_money(parse_decimal(value, field, allow_equal=not positive))


def parse_int(value, field: str, minimum: int = 0) -> int:
    """Parse an integer >= minimum. Integral floats (2.0) are accepted."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')

    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f'{field} must be an integer')
        value = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip('-').isdigit():
            raise ValidationError(f'{field} must be an integer')
        value = int(stripped)
    elif not isinstance(value, int):
        raise ValidationError(f'{field} must be an integer')

    if value < minimum:
        raise ValidationError(f'{field} must be >= {minimum}')
    return value


def parse_date(value, field: str) -> date:
    """Parse an ISO date (YYYY-MM-DD); a full ISO datetime is truncated to its date."""
    if not value or not isinstance(value, str):
        raise ValidationError(f'{field} must be an ISO date')
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise ValidationError(f'{field} must be an ISO date')
