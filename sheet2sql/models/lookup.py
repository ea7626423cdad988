from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""VLOOKUP configuration and result models.

Lookups are configured independently of column mappings: they enrich a
sheet's rows before the rows reach validation and SQL generation.
"""

__all__ = [
    "LookupSourceType",
    "LookupErrorKind",
    "SheetLookup",
    "VLookupConfig",
    "VLookupSet",
    "LookupStats",
    "VLookupError",
    "VLookupResult",
]


class LookupSourceType(Enum):
    INLINE = "inline"
    SHEET = "sheet"
    FILE = "file"  # reserved; not supported by the engine


class LookupErrorKind(Enum):
    """Closed set of lookup failure kinds (also the LOOKUP_<KIND> error log types).

    MISSING_KEY and EMPTY_RESULT complete the taxonomy shared with callers
    that build ``VLookupError``s themselves; the engine reports unmatched keys
    through ``LookupStats`` and never raises these two.
    """
    MISSING_SHEET = "missing_sheet"
    MISSING_COLUMN = "missing_column"
    MISSING_KEY = "missing_key"
    EMPTY_RESULT = "empty_result"
    INVALID_TARGET_CELL = "invalid_target_cell"
    OVERWRITE = "overwrite"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True)
class SheetLookup:
    sheet_name: str
    key_column: str
    value_column: str


@dataclass(frozen=True)
class VLookupConfig:
    """One lookup: key column in the main sheet -> value from a map or another sheet."""
    id: str
    source_column: str
    source_type: LookupSourceType
    target_column: str | None = None  # None -> source_column (in-place replacement)
    target_sheet: str | None = None  # None -> active sheet
    target_cell: str | None = None  # A1 形式 (例 "G2")
    allow_overwrite: bool | None = None
    inline_map: dict[str, str] | None = None
    sheet_lookup: SheetLookup | None = None
    default_value: str | None = None
    case_sensitive: bool = False
    trim_keys: bool = True

    @property
    def output_column(self) -> str:
        return self.target_column if self.target_column is not None else self.source_column


@dataclass(frozen=True)
class VLookupSet:
    enabled: bool = False
    lookups: tuple[VLookupConfig, ...] = ()
    preview_only: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "lookups", tuple(self.lookups))


@dataclass
class LookupStats:
    """Per-lookup counters; ``total_rows`` counts every processed row once."""
    lookup_id: str
    source_column: str
    target_column: str
    total_rows: int = 0
    matched: int = 0
    unmatched: int = 0
    null_inputs: int = 0


@dataclass(frozen=True)
class VLookupError:
    lookup_id: str
    kind: LookupErrorKind
    message: str
    row: int = -1  # -1: 設定レベルのエラー
    value: Any = None


@dataclass(frozen=True)
class VLookupResult:
    rows: list[list[Any]] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    stats: list[LookupStats] = field(default_factory=list)
    errors: list[VLookupError] = field(default_factory=list)
