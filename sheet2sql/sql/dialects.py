from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

from ..models.sheet import cell_text
from ..models.sql_config import DatabaseType
from ..models.types import (
    BOOLEAN_TRUE_TOKENS,
    INTEGER_TYPES,
    JSON_TYPES,
    NUMERIC_TYPES,
    TEMPORAL_TYPES,
    TEXT_TYPES,
    UUID_PATTERN,
    DataType,
)
from .values import format_number, is_json, parse_float_prefix, parse_int_prefix

"""Database dialects.

A dialect owns everything that differs between target databases: identifier
quoting, literal formatting and escaping, column type spelling and the
statement templates (INSERT / UPDATE / UPSERT / transaction control).

Dialects are stateless. They are looked up through a DialectRegistry that the
caller constructs and passes to the generator; there is no process-wide
registration.
"""

__all__ = [
    "NULL",
    "POSTGRES_RESERVED_WORDS",
    "MYSQL_RESERVED_WORDS",
    "AdapterNotFoundError",
    "DatabaseDialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "DialectRegistry",
    "default_registry",
]

NULL = "NULL"

POSTGRES_RESERVED_WORDS = frozenset(
    """
    all analyse analyze and any array as asc asymmetric authorization binary both
    case cast check collate collation column concurrently constraint create cross
    current_catalog current_date current_role current_schema current_time
    current_timestamp current_user default deferrable desc distinct do else end
    except false fetch for foreign freeze from full grant group having ilike in
    initially inner intersect into is isnull join lateral leading left like limit
    localtime localtimestamp natural not notnull null offset on only or order outer
    overlaps placing primary references returning right select session_user
    similar some symmetric table tablesample then to trailing true union unique
    user using variadic verbose when where window with
    """.split()
)

MYSQL_RESERVED_WORDS = frozenset(
    """
    add all alter analyze and as asc before between bigint binary blob both by
    call cascade case change char character check collate column condition
    constraint continue convert create cross current_date current_time
    current_timestamp current_user cursor database databases default delayed
    delete desc describe distinct div double drop dual else elseif enclosed
    escaped exists exit explain false fetch float for force foreign from fulltext
    grant group having if ignore in index inner insert int integer interval into
    is join key keys kill leading leave left like limit lines load localtime
    localtimestamp lock long loop match mod natural not null numeric on option
    optionally or order out outer partition precision primary procedure range
    read real references regexp rename repeat replace require restrict return
    revoke right rlike row rows schema select separator set show smallint
    spatial sql ssl starting table terminated then to trailing trigger true
    union unique unlock unsigned update usage use using values varchar when
    where while with write xor year_month zerofill
    """.split()
)

_UPPER = re.compile(r"[A-Z]")
_LEADING_DIGIT = re.compile(r"^\d")
_NON_WORD = re.compile(r"[^a-zA-Z0-9_]")


class AdapterNotFoundError(LookupError):
    """Raised when no dialect is registered for a database type."""

    def __init__(self, key: Any, available: Iterable[str] = ()) -> None:
        self.key = key
        self.available = list(available)
        super().__init__(key)

    def __str__(self) -> str:
        return f"No dialect registered for '{self.key}'. Available: {', '.join(self.available)}"


class DatabaseDialect(ABC):
    """SQL syntax rules of one database product."""

    name: str = ""
    display_name: str = ""
    quote_char: str = '"'
    reserved_words: frozenset[str] = frozenset()
    # cast_types 指定時に文字列リテラルをキャストする型
    castable_types: frozenset[DataType] = TEMPORAL_TYPES | JSON_TYPES | {DataType.UUID}

    # --- identifiers -----------------------------------------------------

    def needs_quoting(self, name: str) -> bool:
        return bool(
            name.lower() in self.reserved_words
            or _UPPER.search(name)
            or _LEADING_DIGIT.match(name)
            or _NON_WORD.search(name)
        )

    def quote_identifier(self, name: str) -> str:
        if not self.needs_quoting(name):
            return name
        q = self.quote_char
        return f"{q}{name.replace(q, q + q)}{q}"

    # --- literals ----------------------------------------------------------

    @abstractmethod
    def escape_string(self, value: str) -> str:
        ...

    def quote_string(self, value: str) -> str:
        return f"'{self.escape_string(value)}'"

    @abstractmethod
    def bytes_literal(self, data: bytes) -> str:
        ...

    @abstractmethod
    def cast_literal(self, literal: str, data_type: DataType) -> str:
        ...

    def format_value(self, value: Any, data_type: DataType, *, trim: bool = True, cast: bool = False) -> str:
        """Render one cell as a SQL literal.

        None, NaN and blank text become NULL. Values that cannot be coerced
        to ``data_type`` (non-numeric integers, malformed UUID or JSON) also
        become NULL instead of raising.
        """
        text = cell_text(value)
        if text is None:
            return NULL
        stripped = text.strip()
        if stripped == "":
            return NULL

        if data_type in INTEGER_TYPES:
            parsed = parse_int_prefix(stripped)
            return NULL if parsed is None else str(parsed)

        if data_type in NUMERIC_TYPES:
            number = parse_float_prefix(stripped)
            return NULL if number is None else format_number(number)

        if data_type is DataType.BOOLEAN:
            return "TRUE" if stripped.lower() in BOOLEAN_TRUE_TOKENS else "FALSE"

        if data_type in JSON_TYPES:
            if not is_json(stripped):
                return NULL
            literal = self.quote_string(stripped)
        elif data_type is DataType.UUID:
            if not UUID_PATTERN.match(stripped):
                return NULL
            literal = f"'{stripped.lower()}'"
        elif data_type is DataType.BYTEA:
            data = value if isinstance(value, bytes) else stripped.encode("utf-8")
            return self.bytes_literal(data)
        elif data_type in TEXT_TYPES:
            return self.quote_string(stripped if trim else text)
        else:
            literal = self.quote_string(stripped)

        if cast and data_type in self.castable_types:
            return self.cast_literal(literal, data_type)
        return literal

    def column_type(self, data_type: DataType) -> str:
        return data_type.value

    # --- statements --------------------------------------------------------

    def format_batch_values(self, value_rows: Sequence[Sequence[str]]) -> str:
        return ",\n".join(f"({', '.join(row)})" for row in value_rows)

    def _column_list(self, columns: Sequence[str]) -> str:
        return ", ".join(self.quote_identifier(c) for c in columns)

    def build_insert(self, table: str, columns: Sequence[str], value_rows: Sequence[Sequence[str]]) -> str:
        return (
            f"INSERT INTO {self.quote_identifier(table)} ({self._column_list(columns)})\n"
            f"VALUES\n{self.format_batch_values(value_rows)};"
        )

    def build_update(
        self,
        table: str,
        assignments: Sequence[tuple[str, str]],
        where: tuple[str, str],
    ) -> str:
        """``assignments`` and ``where`` are (column, literal) pairs."""
        set_clause = ", ".join(f"{self.quote_identifier(c)} = {v}" for c, v in assignments)
        key, literal = where
        return f"UPDATE {self.quote_identifier(table)} SET {set_clause} WHERE {self.quote_identifier(key)} = {literal};"

    @abstractmethod
    def build_upsert(
        self,
        table: str,
        columns: Sequence[str],
        value_rows: Sequence[Sequence[str]],
        conflict_keys: Sequence[str],
        update_columns: Sequence[str],
    ) -> str:
        """Insert-or-update; an empty ``update_columns`` means "do nothing" on conflict."""

    @abstractmethod
    def begin_transaction(self) -> str:
        ...

    def commit_transaction(self) -> str:
        return "COMMIT;"

    def rollback_transaction(self) -> str:
        return "ROLLBACK;"

    def create_savepoint(self, name: str) -> str:
        return f"SAVEPOINT {self.quote_identifier(name)};"

    def rollback_to_savepoint(self, name: str) -> str:
        return f"ROLLBACK TO SAVEPOINT {self.quote_identifier(name)};"

    def __repr__(self) -> str:  # pragma: no cover (trivial)
        return f"{type(self).__name__}()"


class PostgreSQLDialect(DatabaseDialect):
    name = DatabaseType.POSTGRESQL.value
    display_name = "PostgreSQL"
    quote_char = '"'
    reserved_words = POSTGRES_RESERVED_WORDS

    def escape_string(self, value: str) -> str:
        # NUL はテキスト型に格納できないので除去
        return value.replace("\x00", "").replace("\\", "\\\\").replace("'", "''")

    def bytes_literal(self, data: bytes) -> str:
        return f"'\\x{data.hex()}'"

    def cast_literal(self, literal: str, data_type: DataType) -> str:
        return f"{literal}::{data_type.value}"

    def build_upsert(self, table, columns, value_rows, conflict_keys, update_columns) -> str:
        sql = (
            f"INSERT INTO {self.quote_identifier(table)} ({self._column_list(columns)})\n"
            f"VALUES\n{self.format_batch_values(value_rows)}\n"
            f"ON CONFLICT ({self._column_list(conflict_keys)})"
        )
        if update_columns:
            clauses = ", ".join(
                f"{self.quote_identifier(c)} = EXCLUDED.{self.quote_identifier(c)}" for c in update_columns
            )
            return f"{sql}\nDO UPDATE SET {clauses};"
        return f"{sql}\nDO NOTHING;"

    def begin_transaction(self) -> str:
        return "BEGIN;"


class MySQLDialect(DatabaseDialect):
    name = DatabaseType.MYSQL.value
    display_name = "MySQL"
    quote_char = "`"
    reserved_words = MYSQL_RESERVED_WORDS

    _COLUMN_TYPES = {
        DataType.INTEGER: "INT",
        DataType.SERIAL: "INT AUTO_INCREMENT",
        DataType.BIGSERIAL: "BIGINT AUTO_INCREMENT",
        DataType.VARCHAR: "VARCHAR(255)",
        DataType.CHAR: "CHAR(1)",
        DataType.DOUBLE_PRECISION: "DOUBLE",
        DataType.TIMESTAMP: "DATETIME",
        DataType.TIMESTAMPTZ: "DATETIME",
        DataType.INTERVAL: "VARCHAR(64)",
        DataType.JSONB: "JSON",
        DataType.UUID: "CHAR(36)",
        DataType.BYTEA: "BLOB",
    }
    _CAST_TYPES = {
        DataType.DATE: "DATE",
        DataType.TIME: "TIME",
        DataType.TIMESTAMP: "DATETIME",
        DataType.TIMESTAMPTZ: "DATETIME",
        DataType.JSON: "JSON",
        DataType.JSONB: "JSON",
        DataType.UUID: "CHAR(36)",
    }

    def escape_string(self, value: str) -> str:
        return value.replace("\x00", "").replace("\\", "\\\\").replace("'", "\\'")

    def bytes_literal(self, data: bytes) -> str:
        return f"X'{data.hex()}'"

    def cast_literal(self, literal: str, data_type: DataType) -> str:
        target = self._CAST_TYPES.get(data_type)
        return f"CAST({literal} AS {target})" if target else literal

    def column_type(self, data_type: DataType) -> str:
        return self._COLUMN_TYPES.get(data_type, data_type.value)

    def build_upsert(self, table, columns, value_rows, conflict_keys, update_columns) -> str:
        # MySQL は一意制約から衝突を判定するので conflict_keys は構文に現れない
        head = f"{self.quote_identifier(table)} ({self._column_list(columns)})\nVALUES\n{self.format_batch_values(value_rows)}"
        if not update_columns:
            return f"INSERT IGNORE INTO {head};"
        clauses = ", ".join(
            f"{self.quote_identifier(c)} = VALUES({self.quote_identifier(c)})" for c in update_columns
        )
        return f"INSERT INTO {head}\nON DUPLICATE KEY UPDATE {clauses};"

    def begin_transaction(self) -> str:
        return "START TRANSACTION;"


class DialectRegistry:
    """Dialects keyed by DatabaseType."""

    def __init__(self, dialects: Iterable[DatabaseDialect] = ()) -> None:
        self._dialects: dict[DatabaseType, DatabaseDialect] = {}
        for dialect in dialects:
            self.register(dialect)

    def register(self, dialect: DatabaseDialect, key: DatabaseType | None = None) -> None:
        self._dialects[key or DatabaseType(dialect.name)] = dialect

    def get(self, key: DatabaseType | str) -> DatabaseDialect:
        """
        Raises
        ------
        AdapterNotFoundError: unknown or unregistered database type
        """
        available = [k.value for k in self._dialects]
        if not isinstance(key, DatabaseType):
            try:
                key = DatabaseType(str(key).strip().lower())
            except ValueError:
                raise AdapterNotFoundError(key, available) from None
        try:
            return self._dialects[key]
        except KeyError:
            raise AdapterNotFoundError(key.value, available) from None

    def available(self) -> list[str]:
        return [k.value for k in self._dialects]

    def __contains__(self, key: object) -> bool:
        return key in self._dialects


def default_registry() -> DialectRegistry:
    """A fresh registry holding the PostgreSQL and MySQL dialects."""
    return DialectRegistry([PostgreSQLDialect(), MySQLDialect()])
