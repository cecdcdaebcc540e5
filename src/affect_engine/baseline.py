"""Baseline tracker — time-decayed EWMA mean / variance per subject & metric.

Older observations fade by *elapsed wall-clock time* rather than by call
count: after ``half_life_days`` an observation's weight has halved, no matter
how many entries were written in between.  Only ``(mean, std, count,
last_updated_at)`` are stored; the decay is recomputed from the timestamp gap
on every update.

Both functions are pure and return a new :class:`BaselineStats`; persisting
the result is the caller's job.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

import structlog

from affect_engine.models import BaselineStats

logger = structlog.get_logger(__name__)

# ── Constants ─────────────────────────────────────────────────

DEFAULT_HALF_LIFE_DAYS = 45.0

_LN2 = math.log(2)
_MS_PER_DAY = 24 * 60 * 60 * 1000


def _as_utc(ts: datetime) -> datetime:
    """Treat naive datetimes as UTC so naive and aware values can be mixed."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def decay_factor(
    last_updated_at: datetime | None,
    now: datetime,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
) -> float:
    """Weight retained by the previous state after the elapsed interval.

    ``0`` when there is no previous timestamp, so the first observation fully
    replaces the seed.
    """
    if last_updated_at is None:
        return 0.0
    half_life_ms = half_life_days * _MS_PER_DAY
    dt_ms = max(0.0, (_as_utc(now) - _as_utc(last_updated_at)).total_seconds() * 1000)
    return math.exp(-_LN2 * dt_ms / max(1.0, half_life_ms))


def update_ewma(
    current: BaselineStats,
    new_value: float,
    now: datetime,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
) -> BaselineStats:
    """Fold ``new_value`` into ``current`` and return the updated baseline.

    The variance update uses the pre-update *and* post-update mean
    (``(x - mean) * (x - mean')``) rather than ``(x - mean)**2``, which keeps
    the estimate unbiased while the mean moves within the same call.

    A non-finite ``new_value`` is ignored (``current`` is returned as-is).
    """
    if not math.isfinite(new_value):
        logger.warning("baseline.non_finite_value", value=str(new_value), count=current.count)
        return current

    prev_mean = current.mean if math.isfinite(current.mean) else new_value
    prev_std = current.std if math.isfinite(current.std) else 0.0
    prev_var = prev_std * prev_std

    decay = decay_factor(current.last_updated_at, now, half_life_days)
    one_minus = 1.0 - decay

    mean = decay * prev_mean + one_minus * new_value
    var = decay * prev_var + one_minus * (new_value - prev_mean) * (new_value - mean)

    return BaselineStats(
        mean=mean,
        std=math.sqrt(max(0.0, var)),
        count=current.count + 1,
        last_updated_at=now,
    )


def running_stats(current: BaselineStats, new_value: float) -> BaselineStats:
    """Cumulative (non-decaying) mean/std via Welford's algorithm.

    ``std`` is interpreted as the *sample* standard deviation, so the running
    sum of squares is reconstructed as ``std**2 * (count - 1)``.
    ``last_updated_at`` is carried over unchanged.
    """
    if not math.isfinite(new_value):
        return current

    prev_count = current.count
    prev_mean = current.mean if math.isfinite(current.mean) else 0.0
    prev_std = current.std if math.isfinite(current.std) else 0.0
    m2 = prev_std * prev_std * (prev_count - 1) if prev_count >= 2 else 0.0

    count = prev_count + 1
    delta = new_value - prev_mean
    mean = prev_mean + delta / count
    m2 += delta * (new_value - mean)

    variance = m2 / (count - 1) if count >= 2 else 0.0
    return BaselineStats(
        mean=mean,
        std=math.sqrt(max(0.0, variance)),
        count=count,
        last_updated_at=current.last_updated_at,
    )
