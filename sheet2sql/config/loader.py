from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.lookup import LookupSourceType, SheetLookup, VLookupConfig, VLookupSet
from ..models.mapping import sanitize_column_name
from ..models.sheet import cell_text
from ..models.sql_config import DEFAULT_BATCH_SIZE, ConflictAction, DatabaseType, SqlConfig, SqlMode
from ..models.types import DataType
from ..schema.inference import DEFAULT_CONFIDENCE_THRESHOLD, DEFAULT_SAMPLE_SIZE, ColumnOverride
from ..validate.engine import ValidateOptions

"""Job configuration loader.

Responsibilities:
- Load the YAML job file (default ``config/sheet2sql.yml``)
- Validate it against ``job_schema.json``
- Apply defaults and convert to frozen dataclasses
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "InferenceSettings",
    "SheetJobConfig",
    "JobConfig",
    "load_config",
    "parse_config",
]

DEFAULT_CONFIG_PATH = Path("config/sheet2sql.yml")
SCHEMA_PATH = Path(__file__).with_name("job_schema.json")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class InferenceSettings:
    sample_size: int = DEFAULT_SAMPLE_SIZE
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    use_suggested_primary_key: bool = True


@dataclass(frozen=True)
class SheetJobConfig:
    """Conversion settings for one sheet -> one table."""
    name: str
    table: str
    mode: SqlMode = SqlMode.INSERT
    primary_key: tuple[str, ...] = ()
    conflict_keys: tuple[str, ...] = ()
    on_conflict: ConflictAction = ConflictAction.DO_UPDATE
    batch_size: int | None = None  # None -> JobConfig.batch_size
    wrap_in_transaction: bool = True
    trim_strings: bool = True
    cast_types: bool = False
    ignore_null_values: bool = False
    columns: dict[str, ColumnOverride] = field(default_factory=dict)

    def sql_config(self, database: DatabaseType, default_batch_size: int) -> SqlConfig:
        return SqlConfig(
            table_name=self.table,
            mode=self.mode,
            database=database,
            primary_key=frozenset(self.primary_key),
            conflict_keys=self.conflict_keys,
            batch_size=self.batch_size or default_batch_size,
            wrap_in_transaction=self.wrap_in_transaction,
            on_conflict_action=self.on_conflict,
            trim_strings=self.trim_strings,
            cast_types=self.cast_types,
            ignore_null_values=self.ignore_null_values,
        )


@dataclass(frozen=True)
class JobConfig:
    source_file: str
    output_directory: str = "output"
    error_log_directory: str = "logs"
    database: DatabaseType = DatabaseType.POSTGRESQL
    batch_size: int = DEFAULT_BATCH_SIZE
    header_row: int = 0
    max_rows: int = 100_000
    keep_na_strings: tuple[str, ...] = ()
    fail_fast_lookups: bool = True
    include_comments: bool = True
    create_table: bool = True
    if_not_exists: bool = True
    inference: InferenceSettings = field(default_factory=InferenceSettings)
    validation: ValidateOptions = field(default_factory=ValidateOptions)
    sheets: tuple[SheetJobConfig, ...] = ()  # 空 -> ブックの全シート
    vlookups: VLookupSet = field(default_factory=VLookupSet)

    def sheet_config(self, sheet_name: str) -> SheetJobConfig:
        """Configured entry for ``sheet_name``, or INSERT defaults named after the sheet."""
        for s in self.sheets:
            if s.name == sheet_name:
                return s
        return SheetJobConfig(name=sheet_name, table=sanitize_column_name(sheet_name))


def _validate_config_schema(data: dict[str, Any]) -> None:
    """
    Raises
    ------
    ConfigError: schema file missing / broken, or data violates the schema
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        suffix = f" (at {where})" if where else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def _column_override(raw: dict[str, Any]) -> ColumnOverride:
    default = raw.get("default")
    return ColumnOverride(
        target=raw.get("target"),
        data_type=DataType.parse(raw["type"]) if "type" in raw else None,
        primary_key=raw.get("primary_key"),
        nullable=raw.get("nullable"),
        unique=raw.get("unique"),
        default=cell_text(default) if default is not None else None,
        skip=raw.get("skip", False),
    )


def _sheet_config(raw: dict[str, Any]) -> SheetJobConfig:
    return SheetJobConfig(
        name=raw["name"],
        table=raw.get("table") or sanitize_column_name(raw["name"]),
        mode=SqlMode(raw.get("mode", "INSERT")),
        primary_key=tuple(raw.get("primary_key", ())),
        conflict_keys=tuple(raw.get("conflict_keys", ())),
        on_conflict=ConflictAction(raw.get("on_conflict", "DO UPDATE")),
        batch_size=raw.get("batch_size"),
        wrap_in_transaction=raw.get("wrap_in_transaction", True),
        trim_strings=raw.get("trim_strings", True),
        cast_types=raw.get("cast_types", False),
        ignore_null_values=raw.get("ignore_null_values", False),
        columns={name: _column_override(c or {}) for name, c in (raw.get("columns") or {}).items()},
    )


def _lookup_config(raw: dict[str, Any]) -> VLookupConfig:
    sheet_raw = raw.get("sheet_lookup")
    inline_raw = raw.get("inline_map")
    return VLookupConfig(
        id=raw["id"],
        source_column=raw["source_column"],
        source_type=LookupSourceType(raw["source_type"]),
        target_column=raw.get("target_column"),
        target_sheet=raw.get("target_sheet"),
        target_cell=raw.get("target_cell"),
        allow_overwrite=raw.get("allow_overwrite"),
        inline_map=(
            {str(k): cell_text(v) or "" for k, v in inline_raw.items()} if inline_raw is not None else None
        ),
        sheet_lookup=SheetLookup(**sheet_raw) if sheet_raw else None,
        default_value=raw.get("default_value"),
        case_sensitive=raw.get("case_sensitive", False),
        trim_keys=raw.get("trim_keys", True),
    )


def parse_config(data: dict[str, Any]) -> JobConfig:
    """Validate an already-loaded mapping and convert it to a JobConfig."""
    _validate_config_schema(data)

    try:
        sheets = tuple(_sheet_config(s) for s in data.get("sheets", ()))
    except ValueError as e:  # 不明な型名など
        raise ConfigError(f"config validation failed: {e}") from e

    names = [s.name for s in sheets]
    duplicated = sorted({n for n in names if names.count(n) > 1})
    if duplicated:
        raise ConfigError(f"config validation failed: duplicate sheet entries: {', '.join(duplicated)}")

    inference_raw = data.get("inference", {})
    validation_raw = data.get("validation", {})
    lookups_raw = data.get("vlookups", {})
    return JobConfig(
        source_file=data["source_file"],
        output_directory=data.get("output_directory", "output"),
        error_log_directory=data.get("error_log_directory", "logs"),
        database=DatabaseType(data.get("database", "postgresql")),
        batch_size=data.get("batch_size", DEFAULT_BATCH_SIZE),
        header_row=data.get("header_row", 0),
        max_rows=data.get("max_rows", 100_000),
        keep_na_strings=tuple(data.get("keep_na_strings", ())),
        fail_fast_lookups=data.get("fail_fast_lookups", True),
        include_comments=data.get("include_comments", True),
        create_table=data.get("create_table", True),
        if_not_exists=data.get("if_not_exists", True),
        inference=InferenceSettings(**inference_raw),
        validation=ValidateOptions(**validation_raw),
        sheets=sheets,
        vlookups=VLookupSet(
            enabled=lookups_raw.get("enabled", bool(lookups_raw.get("lookups"))),
            lookups=tuple(_lookup_config(lk) for lk in lookups_raw.get("lookups", ())),
            preview_only=lookups_raw.get("preview_only", False),
        ),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> JobConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top-level mapping required")
    return parse_config(data)
