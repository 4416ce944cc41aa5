"""Lenient conversions for values read back from revision rows.

Stored history can predate the current schema or come from other writers,
so anything unparseable becomes ``None`` instead of an error.
"""

import math
from datetime import datetime
from decimal import Decimal
from typing import Any


def parse_numeric(value: Any) -> int | None:
    """Parse an integer out of a database value, or return None."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None

    if isinstance(value, Decimal):
        return int(value) if value.is_finite() else None

    if isinstance(value, (str, bytes)):
        text = value.decode() if isinstance(value, bytes) else value
        text = text.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            return None

    return None


def parse_positive(value: Any) -> int | None:
    """Like parse_numeric, but only positive values count."""
    number = parse_numeric(value)
    if number is None or number <= 0:
        return None
    return number


def normalize_text(value: Any) -> str | None:
    """Strip a string, mapping empty or non-string values to None."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def to_datetime(value: Any) -> datetime | None:
    """Coerce a datetime or ISO-8601 string, or return None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def to_optional_bool(value: Any) -> bool | None:
    """Map truthy database values (1/0, "1"/"0", bools) to bool, keeping None."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "t", "yes", "on")
    return bool(value)
