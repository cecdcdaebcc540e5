"""Shared Pydantic models used across the engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Subject id under which population-wide baselines are tracked.
POPULATION_SUBJECT = "__population__"


# ── Enums ─────────────────────────────────────────────────────

class MetricName(str, Enum):
    """Per-subject signals that carry an EWMA baseline.

    ``CALMNESS`` is the reverse-coded anxiety axis (``11 - anxiety``) so that a
    positive z-score means "better than baseline" for every metric.
    """

    MOOD = "mood"
    CALMNESS = "calmness"
    COMPOSITE = "composite"


# ── Data transfer objects ─────────────────────────────────────

class Observation(BaseModel):
    """A single raw score recorded for a subject.  Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    metric_name: MetricName
    value: float
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BaselineStats(BaseModel):
    """Exponentially-weighted mean/std for one ``(subject, metric)`` pair.

    While ``count == 0`` the mean/std are seed values and carry no meaning.
    """

    model_config = ConfigDict(frozen=True)

    mean: float = 0.0
    std: float = Field(0.0, ge=0.0)
    count: int = Field(0, ge=0)
    last_updated_at: datetime | None = None
