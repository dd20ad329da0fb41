"""
Tolerant decoding of upstream scalar values.

The MetObs API emits the same logical field as a JSON number, a dotted
string ("3.5"), a Swedish comma-decimal string ("3,5"), or a marker such
as "NaN" or "-". Every function here returns None instead of raising.
"""
import math
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

# Sentinel tokens used upstream for a missing measurement
MISSING_MARKERS = frozenset({"nan", "-"})

# "1234.5", "1,234.5", "-0.5e3"; thousands groups must be complete
_DOT_DECIMAL = re.compile(
    r"^[+-]?(?:\d{1,3}(?:,\d{3})+|\d+)?(?:\.\d*)?(?:[eE][+-]?\d+)?$"
)

# "1234,5", "1 234,5" (space or no-break space groups), "-0,5"
_COMMA_DECIMAL = re.compile(
    r"^[+-]?(?:\d{1,3}(?:[ \u00a0\u202f]\d{3})+|\d+)?(?:,\d+)?(?:[eE][+-]?\d+)?$"
)


def _has_digit(text: str) -> bool:
    return any(ch.isdigit() for ch in text)


def _finite(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def _parse_dot_decimal(text: str) -> Optional[float]:
    if not _has_digit(text) or not _DOT_DECIMAL.match(text):
        return None
    try:
        return _finite(float(text.replace(",", "")))
    except (ValueError, OverflowError):
        return None


def _parse_comma_decimal(text: str) -> Optional[float]:
    # sv-SE renders negative numbers with U+2212
    text = text.replace("\u2212", "-")
    if not _has_digit(text) or not _COMMA_DECIMAL.match(text):
        return None
    for group_sep in (" ", "\u00a0", "\u202f"):
        text = text.replace(group_sep, "")
    try:
        return _finite(float(text.replace(",", ".")))
    except (ValueError, OverflowError):
        return None


def decode_number(raw: Any) -> Optional[float]:
    """
    Decode a raw upstream value into a float.

    Resolution order, first match wins:
      1. int/float -> float (non-finite -> None)
      2. None, empty or whitespace-only string -> None
      3. "NaN" / "-" (case-insensitive) -> None
      4. dot-decimal string, thousands separators allowed
      5. comma-decimal string (Swedish locale)
      6. comma replaced by dot, dot-decimal retried
      7. anything else (bool, dict, list, ...) -> None

    Args:
        raw: Value as produced by the JSON decoder

    Returns:
        Decoded float, or None when the value carries no measurement
    """
    # bool is a subclass of int and must not be read as 0/1
    if isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        try:
            return _finite(float(raw))
        except OverflowError:
            return None

    if raw is None:
        return None

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if text.lower() in MISSING_MARKERS:
            return None

        value = _parse_dot_decimal(text)
        if value is not None:
            return value

        value = _parse_comma_decimal(text)
        if value is not None:
            return value

        return _parse_dot_decimal(text.replace(",", "."))

    return None


def decode_int(raw: Any) -> Optional[int]:
    """Decode a raw identifier-like value into an int, or None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if math.isfinite(raw) and raw.is_integer():
            return int(raw)
        return None
    if isinstance(raw, str):
        text = raw.strip()
        if re.fullmatch(r"[+-]?\d+", text):
            return int(text)
    return None


def from_unix_ms(raw: Any) -> Optional[datetime]:
    """
    Convert epoch milliseconds to an aware UTC datetime.

    Non-positive, missing or out-of-range values yield None rather than
    defaulting to "now" or the epoch.
    """
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)

    millis = decode_int(raw)
    if millis is None or millis <= 0:
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def round_half_away(value: float, digits: int = 1) -> float:
    """Round to ``digits`` decimals, halves away from zero (2.25 -> 2.3, -2.25 -> -2.3)."""
    try:
        quantum = Decimal(1).scaleb(-digits)
        return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return value
