from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..models.mapping import ColumnMapping, active_mappings, missing_source_errors, resolve_source_indexes
from ..models.sheet import cell_value, is_blank
from ..models.sql_config import ConflictAction, SqlConfig, SqlMode
from ..models.validation import Severity, ValidationError
from .dialects import NULL, DatabaseDialect, DialectRegistry, PostgreSQLDialect, default_registry

"""SQL generation.

Turns mapped rows into batched SQL text:

- optional comment header and CREATE TABLE
- INSERT / UPSERT: one statement per ``batch_size`` rows
- UPDATE: one statement per row, keyed by the single primary key column
- optional transaction wrapper

Only active mappings (non-empty target column) take part. Value coercion
never raises: an unusable value becomes NULL and, for NOT NULL columns, is
reported as a ValidationError while generation continues.
"""

__all__ = [
    "SqlConfigError",
    "GenerateOptions",
    "SqlGenerationResult",
    "iter_batches",
    "generate_create_table",
    "generate_inserts",
    "generate_upserts",
    "generate_updates",
    "generate_sql",
]

logger = logging.getLogger(__name__)


class SqlConfigError(ValueError):
    """SqlConfig and mappings cannot produce statements for the requested mode."""


@dataclass(frozen=True)
class GenerateOptions:
    include_comments: bool = True
    if_not_exists: bool = True
    create_table: bool = True
    tool_name: str = "sheet2sql"
    file_name: str | None = None
    headers: Sequence[str] | None = None  # 列名による source 列解決用
    generated_at: datetime | None = None


@dataclass(frozen=True)
class SqlGenerationResult:
    sql: str
    statements: list[str] = field(default_factory=list)
    row_count: int = 0
    errors: list[ValidationError] = field(default_factory=list)


@dataclass(frozen=True)
class _BoundColumn:
    mapping: ColumnMapping
    source_index: int


def iter_batches(rows: Sequence[Any], batch_size: int) -> Iterator[Sequence[Any]]:
    """Yield consecutive slices of at most ``batch_size`` rows."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    for start in range(0, len(rows), batch_size):
        yield rows[start : start + batch_size]


def _bind_columns(mappings: Sequence[ColumnMapping], headers: Sequence[str] | None) -> list[_BoundColumn]:
    indexes = resolve_source_indexes(mappings, headers)
    return [
        _BoundColumn(mapping=m, source_index=indexes[pos])
        for pos, m in enumerate(mappings)
        if m.is_active and pos in indexes
    ]


def _row_literals(
    dialect: DatabaseDialect, columns: Sequence[_BoundColumn], row: Sequence[Any], config: SqlConfig
) -> list[str]:
    return [
        dialect.format_value(
            cell_value(row, c.source_index),
            c.mapping.data_type,
            trim=config.trim_strings,
            cast=config.cast_types,
        )
        for c in columns
    ]


def _primary_key_columns(columns: Sequence[_BoundColumn], config: SqlConfig) -> list[_BoundColumn]:
    return [
        c for c in columns
        if c.mapping.is_primary_key or c.mapping.target_column in config.primary_key
    ]


def generate_create_table(
    table_name: str,
    mappings: Sequence[ColumnMapping],
    dialect: DatabaseDialect | None = None,
    *,
    if_not_exists: bool = True,
) -> str:
    """CREATE TABLE for the active mappings (empty string when there are none)."""
    dialect = dialect or PostgreSQLDialect()
    active = active_mappings(mappings)
    if not active:
        return ""

    lines: list[str] = []
    for m in active:
        parts = [dialect.quote_identifier(m.target_column), dialect.column_type(m.data_type)]
        if not m.is_nullable:
            parts.append("NOT NULL")
        if m.default_value is not None:
            parts.append(f"DEFAULT {m.default_value}")
        if m.is_unique:
            parts.append("UNIQUE")
        lines.append(" ".join(parts))

    pk = [dialect.quote_identifier(m.target_column) for m in active if m.is_primary_key]
    if pk:
        lines.append(f"PRIMARY KEY ({', '.join(pk)})")

    guard = "IF NOT EXISTS " if if_not_exists else ""
    body = ",\n  ".join(lines)
    return f"CREATE TABLE {guard}{dialect.quote_identifier(table_name)} (\n  {body}\n);"


def generate_inserts(
    table_name: str,
    mappings: Sequence[ColumnMapping],
    rows: Sequence[Sequence[Any]],
    config: SqlConfig | None = None,
    *,
    dialect: DatabaseDialect | None = None,
    headers: Sequence[str] | None = None,
) -> list[str]:
    """One multi-row INSERT per batch of ``config.batch_size`` rows."""
    config = config or SqlConfig(table_name=table_name)
    dialect = dialect or PostgreSQLDialect()
    columns = _bind_columns(mappings, headers)
    if not rows or not columns:
        return []

    names = [c.mapping.target_column for c in columns]
    return [
        dialect.build_insert(table_name, names, [_row_literals(dialect, columns, r, config) for r in batch])
        for batch in iter_batches(rows, config.batch_size)
    ]


def generate_upserts(
    table_name: str,
    mappings: Sequence[ColumnMapping],
    rows: Sequence[Sequence[Any]],
    config: SqlConfig,
    *,
    dialect: DatabaseDialect | None = None,
    headers: Sequence[str] | None = None,
) -> list[str]:
    """Batched insert-or-update statements.

    Conflict target is ``config.conflict_keys``, or the primary key columns
    when that is empty.

    Raises
    ------
    SqlConfigError: neither conflict keys nor a primary key are available
    """
    dialect = dialect or PostgreSQLDialect()
    columns = _bind_columns(mappings, headers)
    if not rows or not columns:
        return []

    conflict_keys = list(config.conflict_keys) or [
        c.mapping.target_column for c in _primary_key_columns(columns, config)
    ]
    if not conflict_keys:
        raise SqlConfigError("UPSERT mode requires conflict keys or a primary key column")

    names = [c.mapping.target_column for c in columns]
    if config.on_conflict_action is ConflictAction.DO_UPDATE:
        update_columns = [n for n in names if n not in conflict_keys]
    else:
        update_columns = []

    return [
        dialect.build_upsert(
            table_name,
            names,
            [_row_literals(dialect, columns, r, config) for r in batch],
            conflict_keys,
            update_columns,
        )
        for batch in iter_batches(rows, config.batch_size)
    ]


def generate_updates(
    table_name: str,
    mappings: Sequence[ColumnMapping],
    rows: Sequence[Sequence[Any]],
    config: SqlConfig,
    *,
    dialect: DatabaseDialect | None = None,
    headers: Sequence[str] | None = None,
) -> tuple[list[str], list[ValidationError]]:
    """Row-by-row ``UPDATE ... WHERE pk = value``.

    Rows whose key cell is blank are skipped and reported. With
    ``ignore_null_values`` NULL assignments are left out; a row left without
    any assignment produces no statement.

    Raises
    ------
    SqlConfigError: not exactly one primary key column
    """
    dialect = dialect or PostgreSQLDialect()
    columns = _bind_columns(mappings, headers)
    pk = _primary_key_columns(columns, config)
    if len(pk) != 1:
        raise SqlConfigError(
            f"UPDATE mode requires exactly one primary key column, found {len(pk)}"
        )
    key = pk[0]
    others = [c for c in columns if c is not key]

    statements: list[str] = []
    errors: list[ValidationError] = []
    for i, row in enumerate(rows):
        key_value = cell_value(row, key.source_index)
        key_literal = dialect.format_value(key_value, key.mapping.data_type, cast=config.cast_types)
        if key_literal == NULL:
            errors.append(
                ValidationError(
                    row=i + 2,
                    column=key.mapping.target_column,
                    value=key_value,
                    message=f'Primary key "{key.mapping.target_column}" is empty; row skipped',
                )
            )
            continue

        assignments = list(zip((c.mapping.target_column for c in others), _row_literals(dialect, others, row, config)))
        if config.ignore_null_values:
            assignments = [(c, v) for c, v in assignments if v != NULL]
        if not assignments:
            continue
        statements.append(dialect.build_update(table_name, assignments, (key.mapping.target_column, key_literal)))
    return statements, errors


def _not_null_errors(columns: Sequence[_BoundColumn], rows: Sequence[Sequence[Any]]) -> list[ValidationError]:
    required = [c for c in columns if not c.mapping.is_nullable]
    errors: list[ValidationError] = []
    for i, row in enumerate(rows):
        for c in required:
            value = cell_value(row, c.source_index)
            if is_blank(value):
                errors.append(
                    ValidationError(
                        row=i + 2,
                        column=c.mapping.target_column,
                        value=value,
                        message=f'NOT NULL constraint violated for column "{c.mapping.target_column}"',
                        severity=Severity.ERROR,
                    )
                )
    return errors


def _comment_header(
    dialect: DatabaseDialect, row_count: int, config: SqlConfig, options: GenerateOptions
) -> str:
    generated = options.generated_at or datetime.now(timezone.utc)
    return "\n".join(
        [
            f"-- Generated by {options.tool_name}",
            f"-- Database: {dialect.display_name}",
            f"-- File: {options.file_name or 'untitled.xlsx'}",
            f"-- Rows: {row_count}",
            f"-- Mode: {config.mode.value}",
            f"-- Generated: {generated.isoformat(timespec='seconds')}",
        ]
    )


def generate_sql(
    table_name: str,
    mappings: Sequence[ColumnMapping],
    rows: Sequence[Sequence[Any]],
    config: SqlConfig,
    options: GenerateOptions | None = None,
    registry: DialectRegistry | None = None,
) -> SqlGenerationResult:
    """Generate the complete SQL script for one table.

    Args:
        table_name: Target table
        mappings: Column mappings (inactive ones are ignored)
        rows: Data rows (header row excluded)
        config: Mode, dialect, batching and conflict settings
        options: Comment header / CREATE TABLE / source column resolution
        registry: Dialect registry; a default PostgreSQL + MySQL registry when omitted

    Returns:
        SqlGenerationResult. ``statements`` holds executable statements only
        (no comments); ``sql`` is the full script text.

    Raises:
        AdapterNotFoundError: ``config.database`` has no registered dialect
    """
    options = options or GenerateOptions()
    dialect = (registry or default_registry()).get(config.database)
    columns = _bind_columns(mappings, options.headers)

    errors = missing_source_errors(mappings, options.headers)
    errors.extend(_not_null_errors(columns, rows))
    data: list[str] = []
    if columns:
        try:
            if config.mode is SqlMode.INSERT:
                data = generate_inserts(table_name, mappings, rows, config, dialect=dialect, headers=options.headers)
            elif config.mode is SqlMode.UPSERT:
                data = generate_upserts(table_name, mappings, rows, config, dialect=dialect, headers=options.headers)
            else:
                data, update_errors = generate_updates(
                    table_name, mappings, rows, config, dialect=dialect, headers=options.headers
                )
                errors.extend(update_errors)
        except SqlConfigError as e:
            logger.debug("sql config rejected table=%s: %s", table_name, e)
            errors.append(ValidationError(row=0, column="", value=None, message=str(e)))
            data = []

    statements: list[str] = []
    if config.wrap_in_transaction:
        statements.append(dialect.begin_transaction())
    if options.create_table and columns:
        statements.append(
            generate_create_table(table_name, mappings, dialect, if_not_exists=options.if_not_exists)
        )
    statements.extend(data)
    if config.wrap_in_transaction:
        statements.append(dialect.commit_transaction())

    sections = list(statements)
    if options.include_comments:
        sections.insert(0, _comment_header(dialect, len(rows), config, options))

    logger.debug(
        "generated sql table=%s mode=%s rows=%d statements=%d errors=%d",
        table_name, config.mode.value, len(rows), len(data), len(errors),
    )
    return SqlGenerationResult(
        sql="\n\n".join(sections) + "\n",
        statements=statements,
        row_count=len(rows),
        errors=errors,
    )
