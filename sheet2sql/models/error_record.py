from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

from .lookup import VLookupError
from .validation import ValidationError

"""ErrorRecord model for the JSON Lines error log.

Validation problems and VLOOKUP resolution errors found during a conversion
run are flattened into ErrorRecord lines so that they can be reviewed after
the SQL has been written. ``row`` follows the display-row convention of
ValidationError (0 = sheet / configuration level); lookup configuration
errors use -1.
"""

__all__ = [
    "ErrorRecord",
]


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Workbook filename being converted
        sheet: Sheet name within the workbook
        row: Display row number, 0 for sheet level, -1 for lookup configuration
        column: Target column ('' when not column specific)
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Description
        severity: "error" or "warning"
        value: Offending value (stringified when not a JSON scalar)
    """
    timestamp: str  # ISO8601 UTC
    file: str
    sheet: str
    row: int
    column: str
    error_type: str  # UPPER_SNAKE
    message: str
    severity: str
    value: Any = None

    @staticmethod
    def create(
        file: str,
        sheet: str,
        row: int,
        error_type: str,
        message: str,
        *,
        column: str = "",
        severity: str = "error",
        value: Any = None,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            column=column,
            error_type=error_type,
            message=message,
            severity=severity,
            value=_jsonable(value),
        )

    @staticmethod
    def from_validation_error(file: str, sheet: str, error: ValidationError) -> ErrorRecord:
        return ErrorRecord.create(
            file,
            sheet,
            error.row,
            "VALIDATION_ERROR" if error.is_error else "VALIDATION_WARNING",
            error.message,
            column=error.column,
            severity=error.severity.value,
            value=error.value,
        )

    @staticmethod
    def from_lookup_error(file: str, sheet: str, error: VLookupError) -> ErrorRecord:
        return ErrorRecord.create(
            file,
            sheet,
            error.row,
            f"LOOKUP_{error.kind.value.upper()}",
            f"[{error.lookup_id}] {error.message}",
            value=error.value,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
