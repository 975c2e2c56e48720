"""
Core data contracts for the market research pipeline.
"""

from .schemas import (
    Query,
    Store,
    Competitor,
    CompetitorSet,
    Review,
    ReviewBundle,
    ReviewCollection,
    TrendSnapshot,
    PageInsight,
    InsightCollection,
    BarChartRow,
    GapMatrixRow,
    ChartDataset,
    StepStatus,
    StepRecord,
    MarketReport,
)
from .validation import Ok, Invalid, validate

__all__ = [
    "Query",
    "Store",
    "Competitor",
    "CompetitorSet",
    "Review",
    "ReviewBundle",
    "ReviewCollection",
    "TrendSnapshot",
    "PageInsight",
    "InsightCollection",
    "BarChartRow",
    "GapMatrixRow",
    "ChartDataset",
    "StepStatus",
    "StepRecord",
    "MarketReport",
    "Ok",
    "Invalid",
    "validate",
]
