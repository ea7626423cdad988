from __future__ import annotations

from ..models.processing_result import ProcessingResult

"""SUMMARY line rendering.

Format::

    SUMMARY sheets=<n> success=<n> failed=<n> rows=<n> statements=<n>
    errors=<n> warnings=<n> elapsed_sec=<x> throughput_rps=<x>

(one line; wrapped here for readability)
"""

__all__ = [
    "render_summary_line",
    "format_metric",
]


def format_metric(value: float) -> str:
    """``2.0`` -> ``2``; tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(value)


def render_summary_line(result: ProcessingResult) -> str:
    """Render the SUMMARY line for a conversion run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> render_summary_line(ProcessingResult(start, end, 2.0, []))
        'SUMMARY sheets=0 success=0 failed=0 rows=0 statements=0 errors=0 warnings=0 elapsed_sec=2 throughput_rps=0'
    """
    return (
        f"SUMMARY sheets={len(result.sheet_stats)} "
        f"success={result.success_sheets} "
        f"failed={result.failed_sheets} "
        f"rows={result.total_rows} "
        f"statements={result.total_statements} "
        f"errors={result.total_errors} "
        f"warnings={result.total_warnings} "
        f"elapsed_sec={format_metric(result.elapsed_seconds)} "
        f"throughput_rps={format_metric(result.throughput_rows_per_sec)}"
    )
