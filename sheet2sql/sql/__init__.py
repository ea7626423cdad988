"""SQL dialects and statement generation."""

from .dialects import (
    AdapterNotFoundError,
    DatabaseDialect,
    DialectRegistry,
    MySQLDialect,
    PostgreSQLDialect,
    default_registry,
)
from .generator import (
    GenerateOptions,
    SqlConfigError,
    SqlGenerationResult,
    generate_create_table,
    generate_inserts,
    generate_sql,
    generate_updates,
    generate_upserts,
    iter_batches,
)

__all__ = [
    "AdapterNotFoundError",
    "DatabaseDialect",
    "DialectRegistry",
    "MySQLDialect",
    "PostgreSQLDialect",
    "default_registry",
    "GenerateOptions",
    "SqlConfigError",
    "SqlGenerationResult",
    "generate_create_table",
    "generate_inserts",
    "generate_sql",
    "generate_updates",
    "generate_upserts",
    "iter_batches",
]
