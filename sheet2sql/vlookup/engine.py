from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..excel.context import (
    MissingColumnError,
    MissingSheetError,
    MultiSheetContext,
    build_context,
    find_column_index,
)
from ..models.lookup import (
    LookupErrorKind,
    LookupSourceType,
    LookupStats,
    SheetLookup,
    VLookupConfig,
    VLookupError,
    VLookupResult,
    VLookupSet,
)
from ..models.sheet import Sheet, cell_text, cell_value

"""VLOOKUP engine.

Applies key-based lookups to the rows of a sheet. Each configured lookup is
compiled into a processor (source column index, output column index and a
normalized key -> value map); every row of the sheet is then passed through
the processors in declaration order.

The engine never mutates its inputs: calling ``apply_vlookups`` twice with
the same arguments yields identical results.
"""

__all__ = [
    "LookupBuildError",
    "UnsupportedSourceError",
    "TargetCellError",
    "OverwriteError",
    "LookupProcessor",
    "MultiSheetVLookupResult",
    "apply_vlookups",
    "apply_vlookups_to_sheets",
    "build_output_headers",
    "build_lookup_map",
    "normalize_key",
    "parse_target_cell",
    "create_cross_sheet_lookup",
    "create_inline_lookup",
]

logger = logging.getLogger(__name__)


class LookupBuildError(Exception):
    """Lookup configuration cannot be compiled into a processor."""
    kind = LookupErrorKind.PARSE_ERROR


class UnsupportedSourceError(LookupBuildError):
    pass


class TargetCellError(LookupBuildError):
    kind = LookupErrorKind.INVALID_TARGET_CELL


class OverwriteError(LookupBuildError):
    kind = LookupErrorKind.OVERWRITE


# 構築時に分類対象とする例外 (それ以外は呼び出し元へ伝播)
_CLASSIFIED_ERRORS = (LookupBuildError, MissingSheetError, MissingColumnError)

_TARGET_CELL = re.compile(r"^([A-Za-z]{1,3})([1-9][0-9]*)$")


def normalize_key(value: Any, case_sensitive: bool, trim_keys: bool) -> str:
    result = cell_text(value) or ""
    if trim_keys:
        result = result.strip()
    return result if case_sensitive else result.lower()


def _is_null_input(value: Any) -> bool:
    text = cell_text(value)
    return text is None or text == ""


def parse_target_cell(ref: str) -> tuple[int, int]:
    """Parse an A1 reference into (0-based column index, 1-based row number).

    Raises
    ------
    TargetCellError: malformed reference
    """
    m = _TARGET_CELL.match(ref.strip())
    if not m:
        raise TargetCellError(f'Invalid target cell "{ref}" (expected A1 notation, e.g. "G2")')
    letters, digits = m.groups()
    column = 0
    for ch in letters.upper():
        column = column * 26 + (ord(ch) - ord("A") + 1)
    return column - 1, int(digits)


def _target_cell_column(config: VLookupConfig, headers: Sequence[str]) -> int | None:
    if not config.target_cell:
        return None
    try:
        column, _ = parse_target_cell(config.target_cell)
    except TargetCellError:
        return None
    return column if column < len(headers) else None


def build_output_headers(headers: Sequence[str], lookups: Sequence[VLookupConfig]) -> list[str]:
    """Input headers followed by lookup target columns that are not present yet.

    Lookups addressed by ``target_cell`` write into an existing column and
    add nothing.
    """
    output = list(headers)
    for lookup in lookups:
        if _target_cell_column(lookup, headers) is not None:
            continue
        if lookup.output_column not in output:
            output.append(lookup.output_column)
    return output


def _build_inline_map(config: VLookupConfig) -> dict[str, str]:
    if config.inline_map is None:
        raise LookupBuildError("Inline lookup requires inline_map")
    return {
        normalize_key(k, config.case_sensitive, config.trim_keys): v
        for k, v in config.inline_map.items()
    }


def _build_sheet_map(config: VLookupConfig, context: MultiSheetContext) -> dict[str, str]:
    if config.sheet_lookup is None:
        raise LookupBuildError("Sheet lookup requires sheet_lookup config")
    source = config.sheet_lookup
    target = context.get_sheet(source.sheet_name)
    key_index = context.get_column_index(target, source.key_column)
    value_index = context.get_column_index(target, source.value_column)

    mapping: dict[str, str] = {}
    duplicates = 0
    for row in target.rows:
        key = cell_value(row, key_index)
        if _is_null_input(key):
            continue
        normalized = normalize_key(key, config.case_sensitive, config.trim_keys)
        if normalized == "":
            continue
        if normalized in mapping:
            duplicates += 1
        value = cell_text(cell_value(row, value_index))
        mapping[normalized] = value if value is not None else ""
    if duplicates:
        logger.warning(
            "lookup %s: %d duplicate key(s) in sheet '%s' column '%s'; last occurrence wins",
            config.id, duplicates, target.name, source.key_column,
        )
    return mapping


def build_lookup_map(config: VLookupConfig, context: MultiSheetContext | None = None) -> dict[str, str]:
    """Build the normalized key -> value map for one lookup.

    Raises
    ------
    LookupBuildError: incomplete config, missing context, unsupported source
    MissingSheetError / MissingColumnError: unresolved sheet lookup references
    """
    if config.source_type is LookupSourceType.INLINE:
        return _build_inline_map(config)
    if config.source_type is LookupSourceType.SHEET:
        if context is None:
            raise LookupBuildError("Multi-sheet context required for sheet lookups")
        return _build_sheet_map(config, context)
    raise UnsupportedSourceError(f"Unsupported lookup source type: {config.source_type.value}")


@dataclass(frozen=True)
class _Outcome:
    value: Any
    matched: bool
    null_input: bool


@dataclass
class LookupProcessor:
    """Compiled form of one VLookupConfig."""
    config: VLookupConfig
    source_index: int
    output_index: int
    lookup_map: dict[str, str]
    stats: LookupStats
    first_row: int = 0  # target_cell 指定時、これより前の行は触らない

    def resolve(self, row: Sequence[Any]) -> _Outcome:
        value = cell_value(row, self.source_index)
        if _is_null_input(value):
            return _Outcome(self.config.default_value, matched=False, null_input=True)
        key = normalize_key(value, self.config.case_sensitive, self.config.trim_keys)
        hit = self.lookup_map.get(key)
        if hit is None:
            return _Outcome(self.config.default_value, matched=False, null_input=False)
        return _Outcome(hit, matched=True, null_input=False)


def _create_processor(
    config: VLookupConfig,
    sheet: Sheet,
    output_headers: Sequence[str],
    context: MultiSheetContext | None,
) -> LookupProcessor:
    source_index = find_column_index(sheet, config.source_column)

    first_row = 0
    if config.target_cell:
        column, row_number = parse_target_cell(config.target_cell)
        if column >= len(sheet.headers):
            raise TargetCellError(
                f'Target cell "{config.target_cell}" is outside sheet "{sheet.name}" '
                f"({len(sheet.headers)} columns)"
            )
        if row_number < 2:
            raise TargetCellError(f'Target cell "{config.target_cell}" points at the header row')
        output_index = column
        first_row = row_number - 2  # 1 行目はヘッダ
    else:
        output_index = list(output_headers).index(config.output_column)

    if config.allow_overwrite is False and output_index < len(sheet.headers):
        raise OverwriteError(
            f'Lookup would overwrite existing column "{output_headers[output_index]}" '
            f'in sheet "{sheet.name}"'
        )

    stats = LookupStats(
        lookup_id=config.id,
        source_column=config.source_column,
        target_column=output_headers[output_index],
    )
    return LookupProcessor(
        config=config,
        source_index=source_index,
        output_index=output_index,
        lookup_map=build_lookup_map(config, context),
        stats=stats,
        first_row=first_row,
    )


def apply_vlookups(
    sheet: Sheet,
    lookup_set: VLookupSet,
    context: MultiSheetContext | None = None,
    *,
    disabled: bool = False,
    fail_fast: bool = False,
) -> VLookupResult:
    """Apply every lookup of ``lookup_set`` to the rows of ``sheet``.

    Args:
        sheet: Sheet whose rows are enriched
        lookup_set: Lookups in application order
        context: Multi-sheet context, required by sheet-sourced lookups
        disabled: Return rows/headers untouched
        fail_fast: When any lookup cannot be compiled, return only the errors

    Returns:
        VLookupResult with new rows (input rows are never modified), output
        headers, one LookupStats per compiled lookup and configuration errors.
    """
    if disabled or not lookup_set.enabled or not lookup_set.lookups:
        return VLookupResult(rows=sheet.rows, headers=sheet.headers, stats=[], errors=[])

    errors: list[VLookupError] = []
    output_headers = build_output_headers(sheet.headers, lookup_set.lookups)

    processors: list[LookupProcessor] = []
    for config in lookup_set.lookups:
        try:
            processors.append(_create_processor(config, sheet, output_headers, context))
        except _CLASSIFIED_ERRORS as e:
            logger.debug("lookup %s rejected: %s", config.id, e)
            errors.append(VLookupError(lookup_id=config.id, kind=e.kind, message=str(e)))

    if fail_fast and errors:
        return VLookupResult(errors=errors)

    rows: list[list[Any]] = []
    for row_index, row in enumerate(sheet.rows):
        new_row = list(row)
        for p in processors:
            if row_index < p.first_row:
                continue
            outcome = p.resolve(row)
            if p.output_index >= len(new_row):
                new_row.extend([None] * (p.output_index + 1 - len(new_row)))
            new_row[p.output_index] = outcome.value

            p.stats.total_rows += 1
            if outcome.null_input:
                p.stats.null_inputs += 1
            elif outcome.matched:
                p.stats.matched += 1
            else:
                p.stats.unmatched += 1
        rows.append(new_row)

    return VLookupResult(
        rows=rows,
        headers=output_headers,
        stats=[p.stats for p in processors],
        errors=errors,
    )


@dataclass(frozen=True)
class MultiSheetVLookupResult:
    sheets: list[Sheet] = field(default_factory=list)
    errors: list[VLookupError] = field(default_factory=list)
    stats: list[LookupStats] = field(default_factory=list)
    context: MultiSheetContext | None = None


def apply_vlookups_to_sheets(
    sheets: Sequence[Sheet],
    active_sheet: str,
    lookup_set: VLookupSet,
    *,
    disabled: bool = False,
    fail_fast: bool = False,
) -> MultiSheetVLookupResult:
    """Apply each lookup to its ``target_sheet`` (default: the active sheet).

    Lookups always read from the original, un-enriched sheets. A sheet with
    no lookups addressed to it is returned as is.
    """
    context = build_context(sheets, active_sheet)
    errors: list[VLookupError] = []
    stats: list[LookupStats] = []
    updated: list[Sheet] = []
    for sheet in sheets:
        scoped = tuple(
            lk for lk in lookup_set.lookups if (lk.target_sheet or active_sheet) == sheet.name
        )
        if not scoped:
            updated.append(sheet)
            continue
        result = apply_vlookups(
            sheet,
            VLookupSet(enabled=lookup_set.enabled, lookups=scoped, preview_only=lookup_set.preview_only),
            context,
            disabled=disabled,
            fail_fast=fail_fast,
        )
        errors.extend(result.errors)
        stats.extend(result.stats)
        if fail_fast and result.errors:
            updated.append(sheet)
            continue
        updated.append(Sheet(name=sheet.name, headers=list(result.headers), rows=list(result.rows)))
    return MultiSheetVLookupResult(sheets=updated, errors=errors, stats=stats, context=context)


def _new_lookup_id() -> str:
    return f"lookup_{uuid.uuid4().hex[:12]}"


def create_cross_sheet_lookup(
    source_column: str,
    lookup_sheet: str,
    key_column: str,
    value_column: str,
    *,
    id: str | None = None,
    target_column: str | None = None,
    target_sheet: str | None = None,
    default_value: str | None = None,
    case_sensitive: bool = False,
    trim_keys: bool = True,
) -> VLookupConfig:
    """Config for a lookup against another sheet of the same workbook."""
    return VLookupConfig(
        id=id or _new_lookup_id(),
        source_column=source_column,
        source_type=LookupSourceType.SHEET,
        target_column=target_column if target_column is not None else source_column,
        target_sheet=target_sheet,
        sheet_lookup=SheetLookup(sheet_name=lookup_sheet, key_column=key_column, value_column=value_column),
        default_value=default_value,
        case_sensitive=case_sensitive,
        trim_keys=trim_keys,
    )


def create_inline_lookup(
    source_column: str,
    mapping: dict[str, str],
    *,
    id: str | None = None,
    target_column: str | None = None,
    default_value: str | None = None,
    case_sensitive: bool = False,
    trim_keys: bool = True,
) -> VLookupConfig:
    """Config for a lookup against a literal key/value map."""
    return VLookupConfig(
        id=id or _new_lookup_id(),
        source_column=source_column,
        source_type=LookupSourceType.INLINE,
        target_column=target_column if target_column is not None else source_column,
        inline_map=dict(mapping),
        default_value=default_value,
        case_sensitive=case_sensitive,
        trim_keys=trim_keys,
    )
