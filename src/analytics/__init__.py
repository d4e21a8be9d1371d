"""
Analytics Module

Store efficiency ranking and year-over-year product comparison.
"""
from .comparison import (
    ComparisonFilters,
    ComparisonResult,
    ComparisonWindows,
    YearOverYearComparator,
)
from .rankings import RankingResult, StoreEfficiencyRanker

__all__ = [
    "ComparisonFilters",
    "ComparisonResult",
    "ComparisonWindows",
    "YearOverYearComparator",
    "RankingResult",
    "StoreEfficiencyRanker",
]
