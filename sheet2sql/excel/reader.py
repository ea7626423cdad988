from __future__ import annotations

import io
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.sheet import Sheet

"""Workbook reader.

Reads every (or selected) sheet of an .xlsx workbook with pandas and turns it
into Sheet models: the header row becomes ``headers``, following rows become
``rows`` of plain Python scalars with None for empty cells.

- Blank header cells are named ``Column_<n>`` (1-based).
- Fully blank rows are dropped.
- ``max_rows`` caps the data rows per sheet as a safety limit.
"""

__all__ = [
    "EmptyWorkbookError",
    "SheetHeaderError",
    "DEFAULT_MAX_ROWS",
    "read_workbook",
    "read_excel_frames",
    "sheet_from_frame",
    "get_sheet_names",
]

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 100_000

WorkbookSource = Path | str | bytes


class EmptyWorkbookError(Exception):
    """Raised when the workbook contains no sheets."""


class SheetHeaderError(Exception):
    """Raised when the configured header row does not exist in a sheet."""


def _open(source: WorkbookSource) -> pd.ExcelFile:
    if isinstance(source, bytes):
        return pd.ExcelFile(io.BytesIO(source))
    return pd.ExcelFile(Path(source))


def read_excel_frames(
    source: WorkbookSource,
    target_sheets: Iterable[str] | None = None,
    keep_na_strings: list[str] | None = None,
) -> dict[str, pd.DataFrame]:
    """Read raw (headerless) DataFrames keyed by sheet name, in workbook order.

    Parameters
    ----------
    source: ファイルパス or バイト列
    target_sheets: 対象シート制限 (None なら全シート)
    keep_na_strings: pandas の既定 NaN 変換から除外する文字列 (例: ['NA'])
    """
    import pandas._libs.parsers as parsers

    if keep_na_strings:
        na_values = list(parsers.STR_NA_VALUES - set(keep_na_strings))
        keep_default_na = False
    else:
        na_values = None
        keep_default_na = True

    wanted = set(target_sheets) if target_sheets is not None else None
    frames: dict[str, pd.DataFrame] = {}
    with _open(source) as xls:
        if not xls.sheet_names:
            raise EmptyWorkbookError("workbook contains no sheets")
        for name in xls.sheet_names:
            if wanted is not None and str(name) not in wanted:
                continue
            frames[str(name)] = xls.parse(
                name, header=None, keep_default_na=keep_default_na, na_values=na_values
            )
    return frames


def _to_python(value: Any) -> Any:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    # numpy scalar -> Python scalar
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        try:
            return value.item()
        except (AttributeError, ValueError):
            return value
    return value


def _header_name(value: Any, index: int) -> str:
    value = _to_python(value)
    if value is None:
        return f"Column_{index + 1}"
    text = str(value).strip()
    if isinstance(value, float) and value.is_integer():
        text = str(int(value))
    return text or f"Column_{index + 1}"


def sheet_from_frame(
    df: pd.DataFrame,
    sheet_name: str,
    header_row: int = 0,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> Sheet:
    """Build a Sheet from a headerless DataFrame.

    Raises
    ------
    SheetHeaderError: the sheet is non-empty but has fewer rows than ``header_row + 1``
    """
    if df.shape[0] == 0:
        return Sheet(name=sheet_name, headers=[], rows=[])
    if df.shape[0] <= header_row:
        raise SheetHeaderError(f"sheet '{sheet_name}' lacks header row {header_row + 1}")

    headers = [_header_name(v, i) for i, v in enumerate(df.iloc[header_row].tolist())]
    # 末尾の空ヘッダ列 (データも空) は pandas が読み込むことがあるので落とす
    while headers and headers[-1].startswith("Column_") and df.iloc[header_row:, len(headers) - 1].isna().all():
        headers.pop()

    body = df.iloc[header_row + 1 :]
    body = body[~body.isna().all(axis=1)]
    if len(body) > max_rows:
        logger.warning(
            "sheet '%s': %d data rows exceed max_rows=%d; %d rows dropped",
            sheet_name, len(body), max_rows, len(body) - max_rows,
        )
        body = body.iloc[:max_rows]

    rows: list[list[Any]] = []
    for _, raw in body.iterrows():
        values = [_to_python(v) for v in raw.tolist()]
        while values and values[-1] is None and len(values) > len(headers):
            values.pop()
        rows.append(values)

    return Sheet(name=sheet_name, headers=headers, rows=rows)


def read_workbook(
    source: WorkbookSource,
    *,
    sheet_names: Iterable[str] | None = None,
    header_row: int = 0,
    max_rows: int = DEFAULT_MAX_ROWS,
    keep_na_strings: list[str] | None = None,
) -> list[Sheet]:
    """Read a workbook (path or raw bytes) into Sheet models in workbook order."""
    frames = read_excel_frames(source, target_sheets=sheet_names, keep_na_strings=keep_na_strings)
    return [sheet_from_frame(df, name, header_row=header_row, max_rows=max_rows) for name, df in frames.items()]


def get_sheet_names(source: WorkbookSource) -> list[str]:
    with _open(source) as xls:
        return [str(n) for n in xls.sheet_names]
