from __future__ import annotations

import json
import math
import re

"""Scalar parsing helpers shared by the dialect formatter and the validator.

Numeric parsing is prefix based, the way spreadsheet users expect: ``"12 pcs"``
reads as 12 and ``"3.5kg"`` as 3.5. Text without a numeric prefix yields None.
"""

__all__ = [
    "parse_int_prefix",
    "parse_float_prefix",
    "format_number",
    "is_json",
]

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_int_prefix(text: str) -> int | None:
    """Base-10 integer from the leading digits of ``text`` (``"-3.7"`` -> -3)."""
    m = _INT_PREFIX.match(text)
    return int(m.group(1)) if m else None


def parse_float_prefix(text: str) -> float | None:
    """Float from the leading numeric literal of ``text``; None when absent or not finite."""
    m = _FLOAT_PREFIX.match(text)
    if not m:
        return None
    value = float(m.group(1))
    return value if math.isfinite(value) else None


def format_number(value: float) -> str:
    """``2.0`` -> ``2``, ``2.5`` -> ``2.5``."""
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def is_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True
