from __future__ import annotations

from collections.abc import Iterable, Mapping

from ..models.lookup import LookupErrorKind
from ..models.sheet import Sheet

"""Multi-sheet context: name-indexed access to every parsed sheet of a workbook.

Used by the VLOOKUP engine to resolve cross-sheet lookups. Failures raise
tagged exceptions (``kind`` attribute) so that callers can classify them
without inspecting message text.
"""

__all__ = [
    "MissingSheetError",
    "MissingColumnError",
    "ColumnIndexError",
    "MultiSheetContext",
    "build_context",
]


class MissingSheetError(KeyError):
    """Raised when a sheet name is not present in the workbook."""
    kind = LookupErrorKind.MISSING_SHEET

    def __init__(self, sheet_name: str, available: Iterable[str]) -> None:
        self.sheet_name = sheet_name
        self.available = list(available)
        super().__init__(sheet_name)

    def __str__(self) -> str:
        return f'Sheet "{self.sheet_name}" not found. Available: {", ".join(self.available)}'


class MissingColumnError(KeyError):
    """Raised when a column name cannot be resolved in a sheet's headers."""
    kind = LookupErrorKind.MISSING_COLUMN

    def __init__(self, sheet_name: str, column: str, available: Iterable[str]) -> None:
        self.sheet_name = sheet_name
        self.column = column
        self.available = list(available)
        super().__init__(column)

    def __str__(self) -> str:
        return (
            f'Column "{self.column}" not found in sheet "{self.sheet_name}". '
            f'Available: {", ".join(self.available)}'
        )


class ColumnIndexError(IndexError):
    pass


def find_column_index(sheet: Sheet, column_name: str) -> int:
    """Exact header match first, then a case/whitespace-insensitive match.

    Raises
    ------
    MissingColumnError: no header matches
    """
    try:
        return sheet.headers.index(column_name)
    except ValueError:
        pass
    target = column_name.strip().lower()
    for i, h in enumerate(sheet.headers):
        if h.strip().lower() == target:
            return i
    raise MissingColumnError(sheet.name, column_name, sheet.headers)


class MultiSheetContext:
    """Lookup-by-name index over the sheets of one workbook."""

    def __init__(self, sheets: Mapping[str, Sheet], primary_sheet: str) -> None:
        self._sheets: dict[str, Sheet] = dict(sheets)
        self.primary_sheet = primary_sheet

    @property
    def sheet_names(self) -> list[str]:
        return list(self._sheets)

    @property
    def sheets(self) -> dict[str, Sheet]:
        return dict(self._sheets)

    def get_sheet(self, name: str) -> Sheet:
        try:
            return self._sheets[name]
        except KeyError:
            raise MissingSheetError(name, self._sheets) from None

    def has_sheet(self, name: str) -> bool:
        return name in self._sheets

    def get_column_index(self, sheet: Sheet, column_name: str) -> int:
        return find_column_index(sheet, column_name)

    def get_column_name(self, sheet: Sheet, index: int) -> str:
        if index < 0 or index >= len(sheet.headers):
            raise ColumnIndexError(
                f'Column index {index} out of range for sheet "{sheet.name}" '
                f"(has {len(sheet.headers)} columns)"
            )
        return sheet.headers[index]

    def __repr__(self) -> str:  # pragma: no cover (trivial)
        return f"MultiSheetContext(sheets={self.sheet_names!r}, primary={self.primary_sheet!r})"


def build_context(sheets: Iterable[Sheet], primary_sheet: str) -> MultiSheetContext:
    """Build a context from parsed sheets (later duplicates of a name replace earlier ones)."""
    return MultiSheetContext({s.name: s for s in sheets}, primary_sheet)
