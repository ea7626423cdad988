from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .types import DataType

"""Schema inference output models."""

__all__ = [
    "ColumnAnalysis",
    "SchemaInference",
]


@dataclass(frozen=True)
class ColumnAnalysis:
    """Statistics and detected type for one column (computed over the sampled rows)."""
    name: str
    index: int
    sample_values: list[Any]  # first 10 sampled values
    null_count: int
    empty_string_count: int
    total_count: int
    unique_values: frozenset[str]  # display text of the non-null values
    detected_type: DataType
    confidence: float  # 0.0 - 1.0


@dataclass(frozen=True)
class SchemaInference:
    columns: list[ColumnAnalysis] = field(default_factory=list)
    suggested_primary_key: str | None = None
    quality_score: int = 100  # 0-100
