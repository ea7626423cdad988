from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

"""Conversion run result models.

ProcessingResult aggregates the per-sheet SheetStat records of one job run
and carries the numbers printed on the SUMMARY line.
"""

__all__ = [
    "SheetStatus",
    "SheetStat",
    "ProcessingResult",
]


class SheetStatus(Enum):
    """Outcome of converting one sheet.

    - SUCCESS: SQL written, no error-severity problems
    - PARTIAL: SQL written but errors were reported (NOT NULL, UNIQUE, ...)
    - FAILED: no data statements written (fail-fast lookups, invalid config)
    """
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class SheetStat:
    sheet_name: str
    table_name: str
    status: SheetStatus
    row_count: int  # rows fed to the generator
    statement_count: int  # data statements only (no BEGIN/COMMIT/CREATE)
    error_count: int
    warning_count: int
    elapsed_seconds: float
    output_path: Path | None = None
    quality_score: int | None = None
    error: str | None = None  # failure summary


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results for one job run."""
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    sheet_stats: list[SheetStat] = field(default_factory=list)

    @property
    def success_sheets(self) -> int:
        return sum(1 for s in self.sheet_stats if s.status is not SheetStatus.FAILED)

    @property
    def failed_sheets(self) -> int:
        return sum(1 for s in self.sheet_stats if s.status is SheetStatus.FAILED)

    @property
    def total_rows(self) -> int:
        return sum(s.row_count for s in self.sheet_stats if s.status is not SheetStatus.FAILED)

    @property
    def total_statements(self) -> int:
        return sum(s.statement_count for s in self.sheet_stats)

    @property
    def total_errors(self) -> int:
        return sum(s.error_count for s in self.sheet_stats)

    @property
    def total_warnings(self) -> int:
        return sum(s.warning_count for s in self.sheet_stats)

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return round(self.total_rows / self.elapsed_seconds, 1)
