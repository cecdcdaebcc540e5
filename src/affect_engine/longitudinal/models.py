"""Pydantic models for longitudinal (history-wide) aggregation.

These models represent:
- Scored journal entries as delivered by the extraction boundary
- Per-day metric time-series points
- The derived, read-only longitudinal profile and its sections
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SentimentTrend(str, Enum):
    """Direction of the recent mood slope."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"


# ── Inputs ────────────────────────────────────────────────────


class JournalEntry(BaseModel):
    """A journal entry with its extracted scores and qualitative tags."""

    id: str
    created_at: datetime
    content: str = ""
    mood_score: float
    anxiety_score: float | None = Field(None, description="1-10; treated as 5 when missing.")
    symptoms: list[str] = Field(default_factory=list)
    triggers: list[str] = Field(default_factory=list)
    emotions: list[str] = Field(default_factory=list)
    crisis_detected: bool = False
    phq9_estimate: float | None = None
    gad7_estimate: float | None = None
    phq9_indicators: dict[str, int] | None = None
    mood_z_score: float | None = None


class DailyScore(BaseModel):
    """One day of raw scores for the metrics time-series."""

    day_index: int
    date: datetime
    mood_score: float
    anxiety_score: float


class MetricsTimePoint(BaseModel):
    """Derived metrics for one day, computed incrementally oldest-first."""

    date: datetime
    day_index: int
    mood_score: float
    anxiety_score: float
    composite: float
    z_score: float | None = None
    volatility_7d: float | None = None
    slope_7d: float | None = None
    slope_14d: float | None = None


# ── Profile sections ─────────────────────────────────────────


class BaselineMetrics(BaseModel):
    mean_mood: float | None = None
    mood_std: float | None = None
    mean_anxiety: float | None = None
    anxiety_std: float | None = None
    mean_phq9: float | None = None
    mean_gad7: float | None = None
    volatility_index: float | None = Field(
        None, description="Mean absolute successive difference of mood."
    )
    sample_count: int = 0


class TrendIndicators(BaseModel):
    slope_7d: float | None = None
    slope_14d: float | None = None
    latest_z_score: float | None = None
    anxiety_slope_7d: float | None = None
    anxiety_slope_14d: float | None = None
    latest_anxiety_z_score: float | None = None


class RankedItem(BaseModel):
    label: str
    count: int
    percentage: float = Field(description="Share of entries mentioning the label, 0-100.")


class RecurrentThemes(BaseModel):
    triggers: list[RankedItem] = Field(default_factory=list)
    symptom_clusters: list[RankedItem] = Field(default_factory=list)
    sentiment_trend: SentimentTrend = SentimentTrend.INSUFFICIENT_DATA
    sentiment_slope: float | None = None
    rumination_count: int = 0
    rumination_rate: float | None = None
    hopelessness_count: int = 0
    hopelessness_rate: float | None = None


class EvidenceSnippet(BaseModel):
    excerpt: str
    date: datetime
    signal: str = Field(description="What this excerpt evidences.")
    mood_score: float | None = None


class DataRange(BaseModel):
    earliest: datetime | None = None
    latest: datetime | None = None


class LongitudinalProfile(BaseModel):
    """Structured, quantified summary of a subject's history.

    Recomputed on demand from the entries; never the source of truth.
    """

    baseline: BaselineMetrics
    trends: TrendIndicators
    themes: RecurrentThemes
    evidence: list[EvidenceSnippet] = Field(default_factory=list)
    generated_at: datetime
    data_range: DataRange = Field(default_factory=DataRange)
