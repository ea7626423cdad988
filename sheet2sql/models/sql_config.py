from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""SQL generation settings (mode, dialect, batching, conflict handling)."""

__all__ = [
    "SqlMode",
    "DatabaseType",
    "ConflictAction",
    "SqlConfig",
    "DEFAULT_BATCH_SIZE",
]

# 既定バッチサイズ: 1000 行 / INSERT 文
DEFAULT_BATCH_SIZE = 1000


class SqlMode(Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    UPSERT = "UPSERT"


class DatabaseType(Enum):
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


class ConflictAction(Enum):
    DO_NOTHING = "DO NOTHING"
    DO_UPDATE = "DO UPDATE"


@dataclass(frozen=True)
class SqlConfig:
    """Settings for one ``generate_sql`` call.

    ``primary_key`` and ``conflict_keys`` hold target column names.
    UPDATE mode needs exactly one primary key mapping; UPSERT needs conflict
    keys (the primary key columns are used when ``conflict_keys`` is empty).
    """
    table_name: str
    mode: SqlMode = SqlMode.INSERT
    database: DatabaseType = DatabaseType.POSTGRESQL
    primary_key: frozenset[str] = field(default_factory=frozenset)
    conflict_keys: tuple[str, ...] = ()
    batch_size: int = DEFAULT_BATCH_SIZE
    wrap_in_transaction: bool = True
    on_conflict_action: ConflictAction = ConflictAction.DO_UPDATE
    trim_strings: bool = True
    cast_types: bool = False
    ignore_null_values: bool = False

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        # list / set で渡されても不変型に揃える
        object.__setattr__(self, "primary_key", frozenset(self.primary_key))
        object.__setattr__(self, "conflict_keys", tuple(dict.fromkeys(self.conflict_keys)))
