from __future__ import annotations

import re
from enum import Enum

"""SQL column types and the value patterns shared by inference, validation and formatting.

The same regular expressions are used by the schema inference rules, the
validation engine and the dialect value formatter so that a value accepted by
one stage is never rejected by another.
"""

__all__ = [
    "DataType",
    "INTEGER_TYPES",
    "NUMERIC_TYPES",
    "TEMPORAL_TYPES",
    "JSON_TYPES",
    "TEXT_TYPES",
    "UUID_PATTERN",
    "BOOLEAN_PATTERN",
    "BOOLEAN_TRUE_TOKENS",
    "INTEGER_PATTERN",
    "DECIMAL_PATTERN",
    "TIMESTAMP_PATTERN",
    "DATE_PATTERN",
    "TIME_PATTERN",
    "INT32_MIN",
    "INT32_MAX",
]


class DataType(Enum):
    """Target SQL column type.

    Values are the PostgreSQL spellings; other dialects translate them in
    ``DatabaseDialect.column_type``.
    """
    TEXT = "TEXT"
    VARCHAR = "VARCHAR"
    CHAR = "CHAR"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    SERIAL = "SERIAL"
    BIGSERIAL = "BIGSERIAL"
    DECIMAL = "DECIMAL"
    NUMERIC = "NUMERIC"
    REAL = "REAL"
    DOUBLE_PRECISION = "DOUBLE PRECISION"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    TIMESTAMPTZ = "TIMESTAMPTZ"
    INTERVAL = "INTERVAL"
    JSON = "JSON"
    JSONB = "JSONB"
    UUID = "UUID"
    BYTEA = "BYTEA"

    @classmethod
    def parse(cls, raw: str | DataType) -> DataType:
        """Resolve a type name case-insensitively (``"double precision"`` -> DOUBLE_PRECISION)."""
        if isinstance(raw, DataType):
            return raw
        key = " ".join(str(raw).strip().upper().split())
        for member in cls:
            if member.value == key or member.name == key:
                return member
        raise ValueError(f"unknown data type: {raw!r}")


INTEGER_TYPES = frozenset({DataType.INTEGER, DataType.BIGINT, DataType.SERIAL, DataType.BIGSERIAL})
NUMERIC_TYPES = frozenset({DataType.DECIMAL, DataType.NUMERIC, DataType.REAL, DataType.DOUBLE_PRECISION})
TEMPORAL_TYPES = frozenset(
    {DataType.DATE, DataType.TIME, DataType.TIMESTAMP, DataType.TIMESTAMPTZ, DataType.INTERVAL}
)
JSON_TYPES = frozenset({DataType.JSON, DataType.JSONB})
TEXT_TYPES = frozenset({DataType.TEXT, DataType.VARCHAR, DataType.CHAR})

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
BOOLEAN_PATTERN = re.compile(r"^(true|false|1|0|yes|no|y|n|t|f)$", re.IGNORECASE)
BOOLEAN_TRUE_TOKENS = frozenset({"true", "1", "yes", "y", "t"})
INTEGER_PATTERN = re.compile(r"^-?\d+$")
DECIMAL_PATTERN = re.compile(r"^-?\d+\.?\d*([eE][+-]?\d+)?$")
TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}:\d{2}")

INT32_MIN = -2147483648
INT32_MAX = 2147483647
