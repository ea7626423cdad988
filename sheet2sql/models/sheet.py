from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

"""Sheet domain model.

A Sheet is the in-memory form of one spreadsheet tab: a header row plus data
rows of plain Python scalars (or None). Rows may be shorter than the header
(ragged); a cell beyond the end of a row reads as None.
"""

__all__ = [
    "Sheet",
    "cell_value",
    "cell_text",
    "is_blank",
]


@dataclass(frozen=True)
class Sheet:
    """One parsed spreadsheet tab."""
    name: str
    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    row_count: int = -1  # -1 -> len(rows)

    def __post_init__(self) -> None:
        if self.row_count < 0:
            object.__setattr__(self, "row_count", len(self.rows))

    def cell(self, row_index: int, column_index: int) -> Any:
        return cell_value(self.rows[row_index], column_index)

    def column(self, column_index: int) -> list[Any]:
        return [cell_value(r, column_index) for r in self.rows]


def cell_value(row: Sequence[Any], index: int) -> Any:
    """Return ``row[index]`` or None when the row is too short (null padding)."""
    if index < 0 or index >= len(row):
        return None
    return row[index]


def cell_text(value: Any) -> str | None:
    """Stringify a cell the way a spreadsheet displays it.

    None / NaN -> None. Booleans become ``true``/``false``; integral floats
    lose their ``.0`` so that ``2.0`` read through pandas still looks like an
    integer; dates and datetimes use ISO 8601 (space separator).
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return str(value.quantize(Decimal(1)))
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def is_blank(value: Any) -> bool:
    """True for None, NaN and whitespace-only strings."""
    text = cell_text(value)
    return text is None or text.strip() == ""
