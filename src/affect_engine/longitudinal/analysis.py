"""Analysis helpers — pandas views over journal entries and metric series."""

from __future__ import annotations

from typing import Any, Sequence

import pandas as pd

from affect_engine.longitudinal.models import DailyScore, JournalEntry, MetricsTimePoint
from affect_engine.longitudinal.profile import DEFAULT_ANXIETY


def entries_to_dataframe(entries: Sequence[JournalEntry]) -> pd.DataFrame:
    """Load entries into a frame indexed by UTC ``created_at``.

    Columns: ``id``, ``mood_score``, ``anxiety_score``, ``crisis_detected``.
    Missing anxiety is filled with the neutral midpoint.
    """
    records = [
        {
            "created_at": e.created_at,
            "id": e.id,
            "mood_score": e.mood_score,
            "anxiety_score": e.anxiety_score if e.anxiety_score is not None else DEFAULT_ANXIETY,
            "crisis_detected": e.crisis_detected,
        }
        for e in entries
    ]
    df = pd.DataFrame(records)
    if not df.empty:
        df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
        df = df.set_index("created_at").sort_index()
    return df


def daily_scores(entries: Sequence[JournalEntry]) -> list[DailyScore]:
    """Average entries per calendar day (UTC) into :class:`DailyScore` rows.

    ``day_index`` counts days from the first day with data, so gaps keep
    their true spacing for slope computation.
    """
    df = entries_to_dataframe(entries)
    if df.empty:
        return []

    daily = df[["mood_score", "anxiety_score"]].resample("1D").mean().dropna()
    origin = daily.index[0]
    return [
        DailyScore(
            day_index=int((ts - origin).days),
            date=ts.to_pydatetime(),
            mood_score=round(float(row.mood_score), 2),
            anxiety_score=round(float(row.anxiety_score), 2),
        )
        for ts, row in daily.iterrows()
    ]


def metrics_to_dataframe(points: Sequence[MetricsTimePoint]) -> pd.DataFrame:
    """Load a metrics time-series into a date-indexed frame."""
    df = pd.DataFrame([p.model_dump() for p in points])
    if not df.empty:
        df["date"] = pd.to_datetime(df["date"], utc=True)
        df = df.set_index("date").sort_index()
    return df


def summarize_series(df: pd.DataFrame, column: str = "composite") -> dict[str, Any]:
    """Return summary statistics for one column of a metrics frame."""
    if df.empty or column not in df.columns:
        return {"count": 0}

    series = df[column].dropna()
    if series.empty:
        return {"count": 0}

    return {
        "count": int(series.count()),
        "mean": round(float(series.mean()), 2),
        "std": round(float(series.std()), 2) if len(series) > 1 else 0.0,
        "min": float(series.min()),
        "max": float(series.max()),
        "median": float(series.median()),
        "q25": float(series.quantile(0.25)),
        "q75": float(series.quantile(0.75)),
    }
