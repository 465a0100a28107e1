"""Exact conversions between decimal text and integer base units.

Amounts are carried as integer text and manipulated as Python ``int`` values;
floats never take part in the arithmetic.
"""
from __future__ import annotations

import math
import re
from typing import Any, Optional

FIELD_TYPES = ("decimalPlaces", "decimals")
UNKNOWN_TICKER = "UNKNOWN"

_DECIMAL_RE = re.compile(r"^([-+]?)(\d+)(?:\.(\d+))?$")
_INTEGER_RE = re.compile(r"^[-+]?\d+$")


def is_decimal_text(value: Any) -> bool:
    """Return whether ``value`` is a decimal string carrying a fractional separator."""

    return isinstance(value, str) and "." in value and _DECIMAL_RE.match(value.strip()) is not None


def parse_base_units(value: Any) -> int:
    """Coerce a base-unit amount to ``int``; unparseable input yields ``0``."""

    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        trimmed = value.strip()
        return int(trimmed) if _INTEGER_RE.match(trimmed) else 0
    if isinstance(value, (bytes, bytearray, list, tuple, dict)):
        return 0
    if hasattr(value, "__int__") or hasattr(value, "__index__"):
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            pass
    if type(value).__str__ is not object.__str__:
        try:
            return parse_base_units(str(value))
        except Exception:
            return 0
    return 0


def to_base_units(value: Any, decimals: Optional[int]) -> Optional[str]:
    """Convert decimal text to integer base-unit text.

    The fraction is padded or truncated to exactly ``decimals`` digits.  Returns
    ``None`` for malformed input or when ``decimals`` is unknown.
    """

    if decimals is None or isinstance(decimals, bool) or decimals < 0:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    match = _DECIMAL_RE.match(value.strip())
    if match is None:
        return None
    sign, whole, fraction = match.group(1), match.group(2), match.group(3) or ""
    fraction = fraction[:decimals].ljust(decimals, "0")
    digits = (whole + fraction).lstrip("0") or "0"
    if sign == "-" and digits != "0":
        return f"-{digits}"
    return digits


def scale_exponent(decimals: int, field_type: str = "decimals") -> int:
    """Return the power of ten dividing base units for the given convention.

    Both conventions describe the number of fractional digits, so they resolve
    to the same divisor.
    """

    if field_type not in FIELD_TYPES:
        raise ValueError(f"Unsupported decimals field type: {field_type!r}")
    return max(0, int(decimals))


def format_base_units(amount: Any, decimals: int, field_type: str = "decimals", ticker: str = "") -> str:
    """Render base units as ``"<whole>[.<fraction>] <ticker>"``."""

    places = scale_exponent(decimals, field_type)
    value = amount if isinstance(amount, int) and not isinstance(amount, bool) else parse_base_units(amount)
    sign = "-" if value < 0 else ""
    whole, remainder = divmod(abs(value), 10**places)
    text = f"{sign}{whole}"
    if remainder:
        fraction = str(remainder).rjust(places, "0").rstrip("0")
        if fraction:
            text = f"{sign}{whole}.{fraction}"
    return f"{text} {ticker}" if ticker else text


def placeholder_ticker(token_id: str) -> str:
    return token_id[:6].upper() if token_id else UNKNOWN_TICKER


def display_amount(
    raw_amount: Any,
    decimals: Optional[int],
    field_type: Optional[str],
    ticker: Optional[str],
    *,
    token_id: str = "",
) -> str:
    """Format an amount, degrading to raw base units when decimals are unknown."""

    label = ticker or placeholder_ticker(token_id)
    if decimals is None:
        return f"{parse_base_units(raw_amount)} {label}"
    return format_base_units(raw_amount, decimals, field_type or "decimals", label)
