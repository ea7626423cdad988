"""Domain models for the spreadsheet -> SQL converter.

Sheet / mapping / configuration records shared by inference, VLOOKUP,
validation and SQL generation.
"""

from .error_record import ErrorRecord
from .lookup import (
    LookupErrorKind,
    LookupSourceType,
    LookupStats,
    SheetLookup,
    VLookupConfig,
    VLookupError,
    VLookupResult,
    VLookupSet,
)
from .mapping import (
    ColumnMapping,
    active_mappings,
    missing_source_errors,
    resolve_source_indexes,
    sanitize_column_name,
    unresolved_source_columns,
)
from .processing_result import ProcessingResult, SheetStat, SheetStatus
from .schema import ColumnAnalysis, SchemaInference
from .sheet import Sheet, cell_text, cell_value, is_blank
from .sql_config import DEFAULT_BATCH_SIZE, ConflictAction, DatabaseType, SqlConfig, SqlMode
from .types import DataType
from .validation import QualityScore, Severity, ValidationError, ValidationResult

__all__ = [
    # Sheet
    "Sheet",
    "cell_text",
    "cell_value",
    "is_blank",
    # Mapping / SQL configuration
    "ColumnMapping",
    "DataType",
    "active_mappings",
    "missing_source_errors",
    "resolve_source_indexes",
    "sanitize_column_name",
    "unresolved_source_columns",
    "SqlConfig",
    "SqlMode",
    "DatabaseType",
    "ConflictAction",
    "DEFAULT_BATCH_SIZE",
    # Inference
    "ColumnAnalysis",
    "SchemaInference",
    # VLOOKUP
    "LookupErrorKind",
    "LookupSourceType",
    "LookupStats",
    "SheetLookup",
    "VLookupConfig",
    "VLookupError",
    "VLookupResult",
    "VLookupSet",
    # Validation / reporting
    "QualityScore",
    "Severity",
    "ValidationError",
    "ValidationResult",
    "ErrorRecord",
    "ProcessingResult",
    "SheetStat",
    "SheetStatus",
]
