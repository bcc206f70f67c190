"""
Decimal-string parsing at the data boundary.

Upstream market data transmits every numeric field as a decimal string
("64123.45"). This module is the single conversion point; consumers never
call Decimal() on raw fields themselves, so the malformed-input policy lives
here too: the strict parser raises DataShapeError, the lenient parser maps
any malformed value to None.
"""
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from .exceptions import DataShapeError

DecimalInput = Union[str, int, float, Decimal, None]


def parse_decimal_strict(value: DecimalInput, field: Optional[str] = None) -> Decimal:
    """
    Parse a decimal string (or number) into a finite Decimal.

    Raises:
        DataShapeError: value is missing, blank, non-numeric, NaN or infinite
    """
    if value is None or isinstance(value, bool):
        raise DataShapeError(value, field)
    if isinstance(value, Decimal):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            raise DataShapeError(value, field)
        try:
            parsed = Decimal(text)
        except (InvalidOperation, ValueError):
            raise DataShapeError(value, field)
    if not parsed.is_finite():
        raise DataShapeError(value, field)
    return parsed


def parse_decimal(value: DecimalInput, field: Optional[str] = None) -> Optional[Decimal]:
    """Lenient variant of parse_decimal_strict: malformed input yields None."""
    try:
        return parse_decimal_strict(value, field)
    except DataShapeError:
        return None


def in_range(value: Optional[Decimal], bounds) -> bool:
    """
    Inclusive range check.
    A missing (malformed) value never lies inside any range.
    """
    if value is None:
        return False
    low, high = bounds
    return low <= value <= high
