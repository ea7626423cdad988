from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..models.mapping import ColumnMapping, sanitize_column_name
from ..models.schema import ColumnAnalysis, SchemaInference
from ..models.sheet import cell_text, cell_value
from ..models.types import (
    BOOLEAN_PATTERN,
    DATE_PATTERN,
    DECIMAL_PATTERN,
    INT32_MAX,
    INT32_MIN,
    INTEGER_PATTERN,
    TIME_PATTERN,
    TIMESTAMP_PATTERN,
    UUID_PATTERN,
    DataType,
)

"""Schema inference: detect a column's SQL type from sampled values.

Rules are evaluated from the most specific to the least specific type. The
first rule that matches at least ``confidence_threshold`` of the non-blank
samples wins, so a column of small integers is INTEGER rather than BIGINT or
DECIMAL, and TEXT is only chosen when nothing narrower fits.
"""

__all__ = [
    "TypeRule",
    "TYPE_RULES",
    "DEFAULT_SAMPLE_SIZE",
    "DEFAULT_CONFIDENCE_THRESHOLD",
    "infer_column_type",
    "analyze_columns",
    "is_primary_key_candidate",
    "infer_schema",
    "suggest_constraints",
    "ColumnOverride",
    "build_mappings",
]

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 1000
DEFAULT_CONFIDENCE_THRESHOLD = 0.95

PRIMARY_KEY_TYPES = frozenset(
    {DataType.INTEGER, DataType.BIGINT, DataType.SERIAL, DataType.BIGSERIAL, DataType.UUID, DataType.TEXT}
)


@dataclass(frozen=True)
class TypeRule:
    data_type: DataType
    priority: int
    test: Callable[[str], bool]


def _is_int32(v: str) -> bool:
    if not INTEGER_PATTERN.match(v):
        return False
    return INT32_MIN <= int(v) <= INT32_MAX


def _is_decimal(v: str) -> bool:
    if not DECIMAL_PATTERN.match(v):
        return False
    try:
        float(v)
    except ValueError:  # pragma: no cover - pattern already guarantees a float literal
        return False
    return True


def _is_json_container(v: str) -> bool:
    if not (v.startswith("{") or v.startswith("[")):
        return False
    try:
        parsed = json.loads(v)
    except ValueError:
        return False
    return isinstance(parsed, (dict, list))


TYPE_RULES: tuple[TypeRule, ...] = tuple(
    sorted(
        (
            TypeRule(DataType.UUID, 100, lambda v: bool(UUID_PATTERN.match(v))),
            TypeRule(DataType.BOOLEAN, 90, lambda v: bool(BOOLEAN_PATTERN.match(v))),
            TypeRule(DataType.INTEGER, 80, _is_int32),
            TypeRule(DataType.BIGINT, 75, lambda v: bool(INTEGER_PATTERN.match(v))),
            TypeRule(DataType.DECIMAL, 70, _is_decimal),
            TypeRule(DataType.TIMESTAMPTZ, 60, lambda v: bool(TIMESTAMP_PATTERN.match(v))),
            TypeRule(DataType.DATE, 55, lambda v: bool(DATE_PATTERN.match(v))),
            TypeRule(DataType.TIME, 54, lambda v: bool(TIME_PATTERN.match(v))),
            TypeRule(DataType.JSONB, 50, _is_json_container),
            TypeRule(DataType.TEXT, 0, lambda v: True),
        ),
        key=lambda r: r.priority,
        reverse=True,
    )
)


def _non_blank_samples(values: Sequence[Any]) -> list[str]:
    samples: list[str] = []
    for v in values:
        text = cell_text(v)
        if text is None:
            continue
        text = text.strip()
        if text:
            samples.append(text)
    return samples


def infer_column_type(
    values: Sequence[Any],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> tuple[DataType, float]:
    """Infer the best-fit SQL type for a column.

    Parameters
    ----------
    values: column values (None / NaN / blank strings are ignored)
    sample_size: only the first ``sample_size`` values are inspected
    confidence_threshold: minimum match fraction (0-1) to accept a rule

    Returns
    -------
    tuple[DataType, float]: detected type and the fraction of samples it matched.
    A column without any non-blank value is TEXT with confidence 1.0.
    """
    samples = _non_blank_samples(values[:sample_size])
    if not samples:
        return DataType.TEXT, 1.0

    for rule in TYPE_RULES:
        matching = sum(1 for v in samples if rule.test(v))
        confidence = matching / len(samples)
        if confidence >= confidence_threshold:
            return rule.data_type, confidence

    return DataType.TEXT, 1.0  # pragma: no cover - TEXT rule always matches


def analyze_columns(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> list[ColumnAnalysis]:
    """Analyze every header column over the first ``sample_size`` rows."""
    sample_rows = rows[:sample_size]
    analyses: list[ColumnAnalysis] = []
    for index, name in enumerate(headers):
        column_values = [cell_value(r, index) for r in sample_rows]
        non_null = [v for v in column_values if cell_text(v) is not None]
        data_type, confidence = infer_column_type(
            column_values, sample_size=sample_size, confidence_threshold=confidence_threshold
        )
        analyses.append(
            ColumnAnalysis(
                name=name,
                index=index,
                sample_values=column_values[:10],
                null_count=len(column_values) - len(non_null),
                empty_string_count=sum(1 for v in column_values if v == ""),
                total_count=len(column_values),
                unique_values=frozenset(cell_text(v) for v in non_null),
                detected_type=data_type,
                confidence=confidence,
            )
        )
    return analyses


def is_primary_key_candidate(column: ColumnAnalysis) -> bool:
    """Non-null, all-unique column of an identifier-friendly type."""
    if len(column.unique_values) != column.total_count - column.null_count:
        return False
    if column.null_count > 0:
        return False
    return column.detected_type in PRIMARY_KEY_TYPES


def infer_schema(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> SchemaInference:
    """Infer column types, a primary key suggestion and a 0-100 completeness score."""
    columns = analyze_columns(
        headers, rows, sample_size=sample_size, confidence_threshold=confidence_threshold
    )

    suggested = next((c.name for c in columns if is_primary_key_candidate(c)), None)

    total_cells = sum(c.total_count for c in columns)
    null_cells = sum(c.null_count for c in columns)
    # 空シートは欠損なしとして 100 点扱い
    quality = round((total_cells - null_cells) / total_cells * 100) if total_cells else 100

    logger.debug(
        "inferred schema cols=%d pk=%s quality=%d", len(columns), suggested, quality
    )
    return SchemaInference(columns=columns, suggested_primary_key=suggested, quality_score=quality)


def suggest_constraints(column: ColumnAnalysis) -> dict[str, Any]:
    """Recommend nullable / unique / default for a column."""
    nullable = column.null_count > 0
    unique = len(column.unique_values) == column.total_count - column.null_count
    default = "false" if column.detected_type is DataType.BOOLEAN and not nullable else None
    return {"nullable": nullable, "unique": unique, "default": default}


@dataclass(frozen=True)
class ColumnOverride:
    """User adjustments applied on top of the inferred mapping of one source column."""
    target: str | None = None
    data_type: DataType | None = None
    primary_key: bool | None = None
    nullable: bool | None = None
    unique: bool | None = None
    default: str | None = None
    skip: bool = False


def build_mappings(
    schema: SchemaInference,
    overrides: Mapping[str, ColumnOverride] | None = None,
    *,
    use_suggested_primary_key: bool = True,
) -> list[ColumnMapping]:
    """Merge inferred columns with per-column overrides into ColumnMappings.

    One mapping is produced per analyzed column, in column order, with
    ``source_index`` set. A skipped column keeps its mapping but with an
    empty target (inactive). Inferred constraints are deliberately loose:
    nullable unless primary key, unique only for the primary key.
    """
    overrides = overrides or {}
    explicit_pk = any(o.primary_key for o in overrides.values())
    mappings: list[ColumnMapping] = []
    for col in schema.columns:
        ov = overrides.get(col.name, ColumnOverride())
        if ov.skip:
            mappings.append(
                ColumnMapping(
                    source_column=col.name,
                    target_column="",
                    data_type=col.detected_type,
                    source_index=col.index,
                )
            )
            continue
        if ov.primary_key is not None:
            is_pk = ov.primary_key
        else:
            is_pk = (
                use_suggested_primary_key
                and not explicit_pk
                and col.name == schema.suggested_primary_key
            )
        mappings.append(
            ColumnMapping(
                source_column=col.name,
                target_column=ov.target or sanitize_column_name(col.name),
                data_type=ov.data_type or col.detected_type,
                is_primary_key=is_pk,
                is_nullable=ov.nullable if ov.nullable is not None else not is_pk,
                is_unique=ov.unique if ov.unique is not None else is_pk,
                default_value=ov.default,
                source_index=col.index,
            )
        )
    return mappings
