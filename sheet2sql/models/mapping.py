from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .types import DataType
from .validation import ValidationError

"""ColumnMapping model: association of a source sheet column with a target SQL column."""

__all__ = [
    "ColumnMapping",
    "active_mappings",
    "missing_source_errors",
    "resolve_source_indexes",
    "sanitize_column_name",
    "unresolved_source_columns",
]


@dataclass(frozen=True)
class ColumnMapping:
    """Source column -> target column with type and constraints.

    A mapping with an empty ``target_column`` is inactive and takes no part
    in validation or SQL generation.
    """
    source_column: str
    target_column: str
    data_type: DataType = DataType.TEXT
    is_primary_key: bool = False
    is_nullable: bool = True
    is_unique: bool = False
    default_value: str | None = None  # SQL expression, emitted verbatim in CREATE TABLE
    source_index: int | None = None  # 明示指定があれば列名解決より優先

    @property
    def is_active(self) -> bool:
        return bool(self.target_column and self.target_column.strip())


def active_mappings(mappings: Sequence[ColumnMapping]) -> list[ColumnMapping]:
    return [m for m in mappings if m.is_active]


def _find_header(headers: Sequence[str], name: str) -> int | None:
    try:
        return list(headers).index(name)
    except ValueError:
        pass
    target = name.strip().lower()
    for i, h in enumerate(headers):
        if str(h).strip().lower() == target:
            return i
    return None


def resolve_source_indexes(
    mappings: Sequence[ColumnMapping], headers: Sequence[str] | None = None
) -> dict[int, int]:
    """Resolve the row index each mapping reads from.

    Returns a dict keyed by the mapping's position in ``mappings``. Resolution
    order: explicit ``source_index``, then header name (exact, then
    case/whitespace-insensitive) when ``headers`` is given. Without headers the
    mapping's own position is used; mappings are normally built one per
    header, in header order, so that lines up with the row layout. With
    headers, a name that matches no header is left out of the result (see
    ``unresolved_source_columns``).
    """
    resolved: dict[int, int] = {}
    for pos, mapping in enumerate(mappings):
        if mapping.source_index is not None:
            resolved[pos] = mapping.source_index
        elif headers is None:
            resolved[pos] = pos
        else:
            found = _find_header(headers, mapping.source_column)
            if found is not None:
                resolved[pos] = found
    return resolved


def unresolved_source_columns(
    mappings: Sequence[ColumnMapping], headers: Sequence[str] | None
) -> list[ColumnMapping]:
    """Active mappings whose ``source_column`` matches none of ``headers``."""
    indexes = resolve_source_indexes(mappings, headers)
    return [m for pos, m in enumerate(mappings) if m.is_active and pos not in indexes]


def missing_source_errors(
    mappings: Sequence[ColumnMapping], headers: Sequence[str] | None
) -> list[ValidationError]:
    """Row-0 errors for mappings whose source column is not in ``headers``."""
    return [
        ValidationError(
            row=0,
            column=m.target_column,
            value=m.source_column,
            message=f'source column "{m.source_column}" not found in sheet headers',
        )
        for m in unresolved_source_columns(mappings, headers)
    ]


_NON_WORD = re.compile(r"[^a-z0-9_]")
_UNDERSCORES = re.compile(r"_+")


def sanitize_column_name(name: str) -> str:
    """Turn a spreadsheet header into a bare SQL identifier.

    ``" Order ID "`` -> ``order_id``. Falls back to ``column`` when nothing
    usable remains.
    """
    result = re.sub(r"\s+", "_", name.strip().lower())
    result = _NON_WORD.sub("", result)
    result = _UNDERSCORES.sub("_", result).strip("_")
    return result or "column"
