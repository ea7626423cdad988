from __future__ import annotations

import io
from collections.abc import Sequence
from typing import Any

import pandas as pd

from ..models.sheet import Sheet

"""Simple workbook serialization (e.g. to hand VLOOKUP-enriched sheets back to the user)."""

__all__ = [
    "build_workbook_bytes",
]


def _normalize_headers(sheet: Sheet) -> list[str]:
    if sheet.headers:
        return list(sheet.headers)
    width = max((len(r) for r in sheet.rows), default=0)
    return [f"Column_{i + 1}" for i in range(width)]


def _normalize_rows(rows: Sequence[Sequence[Any]], width: int) -> list[list[Any]]:
    normalized: list[list[Any]] = []
    for row in rows:
        values = list(row)
        if len(values) < width:
            values.extend([None] * (width - len(values)))
        normalized.append(values)
    return normalized


def build_workbook_bytes(sheets: Sequence[Sheet], include_headers: bool = True) -> bytes:
    """Serialize sheets to an in-memory .xlsx workbook.

    Short rows are padded with empty cells; a sheet without headers gets
    ``Column_<n>`` names sized to its widest row.
    """
    if not sheets:
        raise ValueError("at least one sheet is required")
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for index, sheet in enumerate(sheets):
            headers = _normalize_headers(sheet)
            width = max([len(headers), *(len(r) for r in sheet.rows)])
            rows = _normalize_rows(sheet.rows, width)
            data = [headers + [None] * (width - len(headers))] + rows if include_headers else rows
            df = pd.DataFrame(data)
            df.to_excel(writer, sheet_name=sheet.name or f"Sheet{index + 1}", header=False, index=False)
    return buffer.getvalue()
