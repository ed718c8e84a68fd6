from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any


# Leading numeric prefix, the way a browser number field is read ("12.5abc" -> 12.5)
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

# Form numbers at or beyond this magnitude overflow money arithmetic and display
MAX_FORM_NUMBER = Decimal("1e12")


def _in_range(value: Decimal) -> bool:
    return value.is_finite() and abs(value) < MAX_FORM_NUMBER


class ValidationError(ValueError):
    """400-level input problem."""


def parse_lenient_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """
    Read a form number leniently: the leading numeric prefix is used and
    anything unparsable falls back to the default.

    Used for discount and VAT percentages, which default to 0. Values out of
    range (see MAX_FORM_NUMBER) also fall back to the default.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if _in_range(value) else default
    if isinstance(value, (int, float)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return default
        return result if _in_range(result) else default
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return default
    result = Decimal(match.group(1))
    return result if _in_range(result) else default


def parse_strict_decimal(value: Any, field: str) -> Decimal:
    """
    Read a money amount strictly: the whole value must be a finite number.

    Raises ValidationError otherwise.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number")
    if not _in_range(result):
        raise ValidationError(f"{field} is out of range")
    return result


def parse_int_or(value: Any, default: int) -> int:
    """Integer parse that falls back to default (e.g. a cleared qty field)."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = re.match(r"^\s*([+-]?\d+)", str(value))
    if not match:
        return default
    return int(match.group(1))


def to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
