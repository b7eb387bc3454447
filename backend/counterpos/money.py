# Overview: Monetary rounding and display helpers.

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app, has_app_context

from .errors import ValidationError

CENTS = Decimal("0.01")

DEFAULT_CURRENCY_SYMBOL = "Rs"
DEFAULT_CURRENCY_CODE = "PKR"


def to_decimal(value, field: str = "amount") -> Decimal:
    """
    Coerce a numeric input to Decimal.

    Floats go through their shortest repr so 1.005 is treated as the
    literal the cashier typed, not 1.00499999...
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValidationError(f"{field} must be a finite number")
        result = Decimal(repr(value))
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def round2(value, field: str = "amount") -> float:
    """Round to cents, half away from zero."""
    try:
        return float(to_decimal(value, field).quantize(CENTS, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValidationError(f"{field} is out of range")


def _currency_setting(key: str, default: str) -> str:
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def format_currency(amount, include_code: bool = False) -> str:
    symbol = _currency_setting("CURRENCY_SYMBOL", DEFAULT_CURRENCY_SYMBOL)
    formatted = f"{symbol} {round2(amount):.2f}"
    if include_code:
        code = _currency_setting("CURRENCY_CODE", DEFAULT_CURRENCY_CODE)
        return f"{formatted} {code}"
    return formatted


def parse_currency(text: str) -> float:
    """Parse a display string such as "Rs 1,250.50" back to a number."""
    cleaned = re.sub(r"[^\d.\-]", "", text or "")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0
