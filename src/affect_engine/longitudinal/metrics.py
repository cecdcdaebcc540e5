"""Composite wellness score, rolling volatility and trend slopes.

Higher composite always means "better": anxiety is reverse-coded into
calmness before averaging with mood.
"""

from __future__ import annotations

import statistics
from typing import Sequence

from affect_engine.baseline import DEFAULT_HALF_LIFE_DAYS, update_ewma
from affect_engine.longitudinal.models import DailyScore, MetricsTimePoint
from affect_engine.models import BaselineStats
from affect_engine.normalization import MIN_ENTRIES_FOR_Z, anxiety_to_calmness, gated_z_score

# ── Constants ─────────────────────────────────────────────────

DEFAULT_VOLATILITY_WINDOW = 7


def composite_score(mood: float, anxiety: float) -> float:
    """``0.5 * mood + 0.5 * calmness`` on the 1-10 scale, rounded to 2 dp."""
    return round(0.5 * mood + 0.5 * anxiety_to_calmness(anxiety), 2)


def rolling_volatility(
    series: Sequence[float],
    index: int,
    window: int = DEFAULT_VOLATILITY_WINDOW,
) -> float | None:
    """Sample std of the ``window`` values ending at ``index`` (3 dp)."""
    start = max(0, index - window + 1)
    values = list(series[start : index + 1])
    if len(values) < 2:
        return None
    return round(statistics.stdev(values), 3)


def linear_slope(points: Sequence[tuple[float, float]]) -> float | None:
    """Least-squares slope of ``(t, v)`` pairs.

    ``None`` for fewer than two points or when every ``t`` is identical.
    """
    n = len(points)
    if n < 2:
        return None
    sum_t = sum(t for t, _ in points)
    sum_v = sum(v for _, v in points)
    sum_tv = sum(t * v for t, v in points)
    sum_tt = sum(t * t for t, _ in points)
    denom = n * sum_tt - sum_t * sum_t
    if denom == 0:
        return None
    return (n * sum_tv - sum_t * sum_v) / denom


def slope(
    points: Sequence[tuple[int, float]],
    index: int,
    window_days: int,
) -> float | None:
    """Per-day OLS slope of ``(day_index, value)`` points in the trailing window.

    The window covers day indices ``index - window_days + 1`` through
    ``index`` inclusive.  Rounded to 3 dp.
    """
    start_day = max(0, index - window_days + 1)
    window = [(float(d), v) for d, v in points if start_day <= d <= index]
    if len(window) < 2:
        return None
    per_day = linear_slope(window)
    if per_day is None:
        return None
    return round(per_day, 3)


def compute_metrics_time_series(
    days: Sequence[DailyScore],
    *,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
    min_entries_for_z: int = MIN_ENTRIES_FOR_Z,
) -> list[MetricsTimePoint]:
    """Walk ``days`` oldest-first and derive per-day metrics.

    Each composite is folded into an EWMA baseline; the z-score is reported
    against the *updated* baseline once at least ``min_entries_for_z``
    observations exist.
    """
    if not days:
        return []

    ordered = sorted(days, key=lambda d: d.day_index)
    baseline = BaselineStats()
    composites: list[float] = []
    points: list[tuple[int, float]] = []
    results: list[MetricsTimePoint] = []

    for i, day in enumerate(ordered):
        comp = composite_score(day.mood_score, day.anxiety_score)
        composites.append(comp)
        points.append((day.day_index, comp))

        baseline = update_ewma(baseline, comp, day.date, half_life_days)
        z = gated_z_score(comp, baseline, min_entries=min_entries_for_z)

        results.append(
            MetricsTimePoint(
                date=day.date,
                day_index=day.day_index,
                mood_score=day.mood_score,
                anxiety_score=day.anxiety_score,
                composite=comp,
                z_score=round(z, 2) if z is not None else None,
                volatility_7d=rolling_volatility(composites, i, DEFAULT_VOLATILITY_WINDOW),
                slope_7d=slope(points, day.day_index, 7),
                slope_14d=slope(points, day.day_index, 14),
            )
        )
    return results
