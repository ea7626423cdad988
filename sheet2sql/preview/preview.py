from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

from ..models.sheet import Sheet, cell_text, cell_value

"""Sheet preview: sample rows plus a coarse per-column type hint.

Independent from schema inference and SQL generation; meant for a quick look
at a workbook (``--inspect-data``).
"""

__all__ = [
    "DEFAULT_SAMPLE_ROWS",
    "DEFAULT_SAMPLE_VALUES",
    "ColumnInfo",
    "PreviewData",
    "build_preview_data",
    "build_multi_sheet_preview",
    "analyze_columns_for_preview",
    "render_preview",
]

DEFAULT_SAMPLE_ROWS = 20
DEFAULT_SAMPLE_VALUES = 3


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    index: int
    samples: list[Any]
    type_hint: str  # text | number | date | boolean | mixed
    null_count: int


@dataclass(frozen=True)
class PreviewData:
    columns: list[ColumnInfo]
    row_count: int
    sample_rows: list[list[Any]]
    sheets: list[str] = field(default_factory=list)
    active_sheet: str = ""


def _is_empty(value: Any) -> bool:
    text = cell_text(value)
    return text is None or text == ""


def _looks_numeric(value: Any) -> bool:
    text = cell_text(value)
    if text is None:
        return False
    try:
        float(text.strip() or "0")
    except ValueError:
        return False
    return True


def _type_hint(samples: Sequence[Any]) -> str:
    if not samples:
        return "text"
    numbers = dates = booleans = 0
    for v in samples:
        if isinstance(v, bool):
            booleans += 1
        elif isinstance(v, (int, float)):
            numbers += 1
        elif isinstance(v, (datetime, date, time)):
            dates += 1
        elif _looks_numeric(v):
            numbers += 1
    if numbers == len(samples):
        return "number"
    if dates == len(samples):
        return "date"
    if booleans == len(samples):
        return "boolean"
    if numbers or dates or booleans:
        return "mixed"
    return "text"


def analyze_columns_for_preview(sheet: Sheet, sample_count: int = DEFAULT_SAMPLE_VALUES) -> list[ColumnInfo]:
    """First ``sample_count`` non-empty values of each column and its empty-cell count."""
    columns: list[ColumnInfo] = []
    for index, name in enumerate(sheet.headers):
        samples: list[Any] = []
        nulls = 0
        for row in sheet.rows:
            value = cell_value(row, index)
            if _is_empty(value):
                nulls += 1
            elif len(samples) < sample_count:
                samples.append(value)
        columns.append(
            ColumnInfo(name=name, index=index, samples=samples, type_hint=_type_hint(samples), null_count=nulls)
        )
    return columns


def build_preview_data(
    sheet: Sheet,
    sample_rows: int = DEFAULT_SAMPLE_ROWS,
    sample_values: int = DEFAULT_SAMPLE_VALUES,
) -> PreviewData:
    return PreviewData(
        columns=analyze_columns_for_preview(sheet, sample_values),
        row_count=sheet.row_count,
        sample_rows=[list(r) for r in sheet.rows[:sample_rows]],
        sheets=[sheet.name],
        active_sheet=sheet.name,
    )


def build_multi_sheet_preview(
    sheets: Sequence[Sheet],
    active_sheet: str,
    sample_rows: int = DEFAULT_SAMPLE_ROWS,
    sample_values: int = DEFAULT_SAMPLE_VALUES,
) -> PreviewData:
    """Preview of ``active_sheet`` (first sheet when not found) listing every sheet name."""
    if not sheets:
        raise ValueError("at least one sheet is required")
    active = next((s for s in sheets if s.name == active_sheet), sheets[0])
    preview = build_preview_data(active, sample_rows, sample_values)
    return PreviewData(
        columns=preview.columns,
        row_count=preview.row_count,
        sample_rows=preview.sample_rows,
        sheets=[s.name for s in sheets],
        active_sheet=active.name,
    )


def render_preview(preview: PreviewData, max_rows: int = 3) -> list[str]:
    """Plain text lines for terminal output."""
    lines = [f"SHEET: {preview.active_sheet} rows={preview.row_count}"]
    for c in preview.columns:
        samples = ", ".join(cell_text(v) or "" for v in c.samples)
        lines.append(f"  [{c.index}] {c.name} ({c.type_hint}) nulls={c.null_count} samples=[{samples}]")
    for row in preview.sample_rows[:max_rows]:
        lines.append("    " + " | ".join(cell_text(v) or "" for v in row))
    return lines
