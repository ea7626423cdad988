from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Validation report models."""

__all__ = [
    "Severity",
    "ValidationError",
    "ValidationResult",
    "QualityScore",
]


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationError:
    """A single data or configuration problem.

    Attributes:
        row: 1-based display row (header row is row 1, so the first data row
            is row 2). 0 marks a file / configuration level problem.
        column: Target column name ('' when not column specific)
        value: Offending cell value
        message: Human readable description
        severity: ERROR or WARNING
    """
    row: int
    column: str
    value: Any
    message: str
    severity: Severity = Severity.ERROR

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR


@dataclass(frozen=True)
class ValidationResult:
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)
    row_count: int = 0

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)


@dataclass(frozen=True)
class QualityScore:
    score: int  # 0-100
    total_cells: int
    null_cells: int  # required-but-empty cells
    type_mismatches: int
    valid_cells: int
