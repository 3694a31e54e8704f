"""複数年検証モジュール"""

from powerrank.validation.multi_year import (
    ComparisonResult,
    HistoricalEvent,
    MultiYearSummary,
    MultiYearValidationRunner,
    interpret_deltas,
)

__all__ = [
    "ComparisonResult",
    "HistoricalEvent",
    "MultiYearSummary",
    "MultiYearValidationRunner",
    "interpret_deltas",
]
