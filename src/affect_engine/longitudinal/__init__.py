"""Longitudinal aggregation over a subject's full journal history."""

from affect_engine.longitudinal.metrics import (
    composite_score,
    compute_metrics_time_series,
    linear_slope,
    rolling_volatility,
    slope,
)
from affect_engine.longitudinal.models import (
    DailyScore,
    EvidenceSnippet,
    JournalEntry,
    LongitudinalProfile,
    MetricsTimePoint,
    SentimentTrend,
)
from affect_engine.longitudinal.profile import (
    classify_sentiment_trend,
    compute_longitudinal_profile,
    frequency_table,
    select_evidence,
    truncate_excerpt,
)

__all__ = [
    "DailyScore",
    "EvidenceSnippet",
    "JournalEntry",
    "LongitudinalProfile",
    "MetricsTimePoint",
    "SentimentTrend",
    "classify_sentiment_trend",
    "composite_score",
    "compute_longitudinal_profile",
    "compute_metrics_time_series",
    "frequency_table",
    "linear_slope",
    "rolling_volatility",
    "select_evidence",
    "slope",
    "truncate_excerpt",
]
