from __future__ import annotations

import math
import numbers
import re
from typing import Any

"""Cell value helpers shared by the normalizer and the series builder.

Numeric coercion follows "parse the leading floating point number; on failure
treat as 0.0": "12.5kg" -> 12.5, " 3 " -> 3.0, "abc" -> 0.0, True -> 0.0.
Non-finite numbers ("Infinity", "1e999") count as unparseable.
"""

__all__ = [
    "is_present",
    "parse_number",
    "coerce_number",
    "text_label",
]

_NUMERIC_PREFIX = re.compile(
    r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
)


def is_present(value: Any) -> bool:
    """True unless the value is missing, None, NaN or the empty string."""
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


def parse_number(value: Any) -> float | None:
    """Parse a float from a cell value, None when it does not parse."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        try:
            number = float(value)
        except OverflowError:
            return None
    else:
        m = _NUMERIC_PREFIX.match(str(value))
        if m is None:
            return None
        number = float(m.group(1))
    return number if math.isfinite(number) else None


def coerce_number(value: Any) -> float:
    number = parse_number(value)
    return 0.0 if number is None else number


def text_label(value: Any) -> str:
    """String form of a cell for use as a category key or header name.

    Integral floats drop the trailing ".0" and booleans render lower-case so
    that 10 and 10.0 land in the same category.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
