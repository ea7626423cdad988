from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

from ..models.mapping import ColumnMapping, missing_source_errors, resolve_source_indexes
from ..models.sheet import cell_text, cell_value, is_blank
from ..models.types import (
    BOOLEAN_PATTERN,
    DATE_PATTERN,
    INT32_MAX,
    INT32_MIN,
    JSON_TYPES,
    NUMERIC_TYPES,
    UUID_PATTERN,
    DataType,
)
from ..models.validation import QualityScore, Severity, ValidationError, ValidationResult
from ..sql.values import is_json, parse_float_prefix, parse_int_prefix

"""Validation engine.

Checks rows against column mappings independently of SQL generation:
NOT NULL, type conformance (same patterns as schema inference) and UNIQUE.
"""

__all__ = [
    "ValidateOptions",
    "TypeCheck",
    "validate_type",
    "validate_row",
    "check_duplicates",
    "validate_data",
    "calculate_quality_score",
]


@dataclass(frozen=True)
class ValidateOptions:
    strict_types: bool = False  # True: 型不一致を error 扱い
    max_errors: int = 100  # 0 = 無制限
    check_constraints: bool = True


@dataclass(frozen=True)
class TypeCheck:
    valid: bool
    message: str | None = None


_OK = TypeCheck(True)


def _parses_as_datetime(text: str) -> bool:
    try:
        datetime.fromisoformat(text)
    except ValueError:
        return False
    return True


def _parses_as_time(text: str) -> bool:
    try:
        time.fromisoformat(text)
    except ValueError:
        return False
    return True


def validate_type(value: Any, data_type: DataType) -> TypeCheck:
    """Structural check of one value against a column type.

    None and blank values are always valid (NOT NULL is a separate check).
    Text types accept anything.
    """
    text = cell_text(value)
    if text is None or text.strip() == "":
        return _OK
    s = text.strip()

    if data_type in (DataType.INTEGER, DataType.SERIAL):
        parsed = parse_int_prefix(s)
        if parsed is None:
            return TypeCheck(False, f'Expected INTEGER, got "{s}"')
        if not INT32_MIN <= parsed <= INT32_MAX:
            return TypeCheck(False, f"INTEGER value out of range: {parsed}")
        return _OK

    if data_type in (DataType.BIGINT, DataType.BIGSERIAL):
        if parse_int_prefix(s) is None:
            return TypeCheck(False, f'Expected BIGINT, got "{s}"')
        return _OK

    if data_type in NUMERIC_TYPES:
        if parse_float_prefix(s) is None:
            return TypeCheck(False, f'Expected numeric type, got "{s}"')
        return _OK

    if data_type is DataType.BOOLEAN:
        if not BOOLEAN_PATTERN.match(s):
            return TypeCheck(False, f'Expected BOOLEAN, got "{s}"')
        return _OK

    if data_type is DataType.DATE:
        if not DATE_PATTERN.match(s):
            return TypeCheck(False, f'Expected DATE (YYYY-MM-DD), got "{s}"')
        try:
            date.fromisoformat(s)
        except ValueError:
            return TypeCheck(False, f'Invalid DATE: "{s}"')
        return _OK

    if data_type in (DataType.TIMESTAMP, DataType.TIMESTAMPTZ):
        if not _parses_as_datetime(s):
            return TypeCheck(False, f'Expected TIMESTAMP, got "{s}"')
        return _OK

    if data_type is DataType.TIME:
        if not _parses_as_time(s):
            return TypeCheck(False, f'Expected TIME, got "{s}"')
        return _OK

    if data_type is DataType.UUID:
        if not UUID_PATTERN.match(s):
            return TypeCheck(False, f'Expected UUID, got "{s}"')
        return _OK

    if data_type in JSON_TYPES:
        if not is_json(s):
            return TypeCheck(False, f'Expected valid JSON, got "{s}"')
        return _OK

    return _OK


def _limit_reached(count: int, max_errors: int) -> bool:
    return max_errors > 0 and count >= max_errors


def validate_row(
    row: Sequence[Any],
    row_index: int,
    mappings: Sequence[ColumnMapping],
    options: ValidateOptions | None = None,
    headers: Sequence[str] | None = None,
) -> list[ValidationError]:
    """Check one row; ``row_index`` is 0-based, reported rows are ``row_index + 2``."""
    options = options or ValidateOptions()
    indexes = resolve_source_indexes(mappings, headers)
    problems: list[ValidationError] = []

    for pos, mapping in enumerate(mappings):
        if not mapping.is_active or pos not in indexes:
            continue
        value = cell_value(row, indexes[pos])
        column = mapping.target_column

        if options.check_constraints and not mapping.is_nullable and is_blank(value):
            problems.append(
                ValidationError(
                    row=row_index + 2,
                    column=column,
                    value=value,
                    message=f'NOT NULL constraint violated for column "{column}"',
                )
            )

        check = validate_type(value, mapping.data_type)
        if not check.valid:
            problems.append(
                ValidationError(
                    row=row_index + 2,
                    column=column,
                    value=value,
                    message=check.message or f'Type mismatch for "{column}"',
                    severity=Severity.ERROR if options.strict_types else Severity.WARNING,
                )
            )

        if _limit_reached(len(problems), options.max_errors):
            break
    return problems


def check_duplicates(rows: Sequence[Sequence[Any]], column_index: int) -> dict[str, list[int]]:
    """Values (as displayed text) occurring in more than one row -> 0-based row indexes.

    Blank cells are ignored.
    """
    seen: dict[str, list[int]] = {}
    for i, row in enumerate(rows):
        value = cell_value(row, column_index)
        if is_blank(value):
            continue
        seen.setdefault(cell_text(value), []).append(i)
    return {v: idx for v, idx in seen.items() if len(idx) > 1}


def validate_data(
    rows: Sequence[Sequence[Any]],
    mappings: Sequence[ColumnMapping],
    options: ValidateOptions | None = None,
    headers: Sequence[str] | None = None,
) -> ValidationResult:
    """Validate every row, then UNIQUE constraints across the whole dataset.

    Row scanning stops once ``max_errors`` errors have accumulated (0 means
    no limit). Duplicate values of a unique column are reported once per
    occurrence.
    """
    options = options or ValidateOptions()
    errors: list[ValidationError] = missing_source_errors(mappings, headers)
    warnings: list[ValidationError] = []

    for i, row in enumerate(rows):
        for problem in validate_row(row, i, mappings, options, headers):
            (errors if problem.is_error else warnings).append(problem)
        if _limit_reached(len(errors), options.max_errors):
            break

    if options.check_constraints:
        indexes = resolve_source_indexes(mappings, headers)
        for pos, mapping in enumerate(mappings):
            if not (mapping.is_active and mapping.is_unique) or pos not in indexes:
                continue
            for value, occurrences in check_duplicates(rows, indexes[pos]).items():
                for i in occurrences:
                    errors.append(
                        ValidationError(
                            row=i + 2,
                            column=mapping.target_column,
                            value=value,
                            message=f'UNIQUE constraint violated: duplicate value "{value}"',
                        )
                    )

    return ValidationResult(errors=errors, warnings=warnings, row_count=len(rows))


def calculate_quality_score(
    rows: Sequence[Sequence[Any]],
    mappings: Sequence[ColumnMapping],
    headers: Sequence[str] | None = None,
) -> QualityScore:
    """0-100 share of cells that are neither required-but-empty nor a type mismatch."""
    indexes = resolve_source_indexes(mappings, headers)
    active = [(pos, m) for pos, m in enumerate(mappings) if m.is_active and pos in indexes]
    total = len(rows) * len(active)
    null_cells = 0
    mismatches = 0
    for row in rows:
        for pos, mapping in active:
            value = cell_value(row, indexes[pos])
            if is_blank(value) and not mapping.is_nullable:
                null_cells += 1
            if not validate_type(value, mapping.data_type).valid:
                mismatches += 1

    valid_cells = total - null_cells - mismatches
    score = round(valid_cells / total * 100) if total else 100
    return QualityScore(
        score=score,
        total_cells=total,
        null_cells=null_cells,
        type_mismatches=mismatches,
        valid_cells=valid_cells,
    )
