"""Normalizer — bounded z-scores against a personal or population baseline.

Hardening
---------
- A std floor (:data:`STD_FLOOR`) prevents division blow-up for subjects who
  have shown near-zero variance so far.
- Results are clamped to ``±Z_SCORE_CLAMP`` so one extreme entry cannot
  dominate downstream displays or models.
- Cold start (``count < 2``) and non-finite input yield a neutral ``0``.
"""

from __future__ import annotations

import math
from statistics import NormalDist
from typing import Literal

from affect_engine.models import BaselineStats

# ── Constants ─────────────────────────────────────────────────

STD_FLOOR = 0.75
Z_SCORE_CLAMP = 5.0
MIN_ENTRIES_FOR_Z = 5

# Upper end of the 1–10 self-report scales; reverse-coding maps x -> 11 - x.
_SCALE_REFLECT = 11

# Logistic parameters (max, k, b) for z -> symptom-scale estimates.
_SCALE_PARAMS: dict[str, tuple[int, float, float]] = {
    "phq9": (27, 0.9, -0.6),
    "gad7": (21, 1.0, -0.4),
}

_STD_NORMAL = NormalDist()


def _clamp(v: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, v))


def z_score(
    raw: float,
    baseline: BaselineStats,
    *,
    std_floor: float = STD_FLOOR,
    clamp: float = Z_SCORE_CLAMP,
) -> float:
    """Return ``(raw - mean) / max(std, std_floor)`` clamped to ``±clamp``."""
    if not math.isfinite(raw):
        return 0.0
    if baseline.count < 2:
        return 0.0
    std = max(baseline.std, std_floor)
    if not math.isfinite(std):
        return 0.0
    return _clamp((raw - baseline.mean) / std, -clamp, clamp)


def gated_z_score(
    raw: float,
    baseline: BaselineStats,
    *,
    min_entries: int = MIN_ENTRIES_FOR_Z,
    std_floor: float = STD_FLOOR,
    clamp: float = Z_SCORE_CLAMP,
) -> float | None:
    """Like :func:`z_score` but ``None`` while the baseline is still collecting.

    ``None`` is a first-class "not yet computable" state, distinct from a
    genuine z of 0.
    """
    if baseline.count < min_entries:
        return None
    return z_score(raw, baseline, std_floor=std_floor, clamp=clamp)


def anxiety_to_calmness(anxiety: float) -> float:
    """Reverse-code anxiety (1-10, higher = worse) into calmness (higher = better)."""
    return _SCALE_REFLECT - anxiety


def z_to_percentile(z: float) -> float:
    """Map a z-score to a percentile in ``[0, 1]`` under a standard normal."""
    if not math.isfinite(z):
        return 0.5
    return _clamp(_STD_NORMAL.cdf(z), 0.0, 1.0)


def map_to_validated_scale(z: float, target_scale: Literal["phq9", "gad7"]) -> int:
    """Map a "higher is better" z-score onto a bounded symptom-scale estimate.

    ``score = max * sigmoid(-k * (z - b))`` rounded and clamped to
    ``[0, max]``.  These are text-derived equivalents for trend display, not
    an administered questionnaire.
    """
    try:
        max_score, k, b = _SCALE_PARAMS[target_scale]
    except KeyError:
        raise ValueError(
            f"Unknown scale {target_scale!r}. Available: {sorted(_SCALE_PARAMS)}"
        ) from None
    if not math.isfinite(z):
        z = 0.0
    s = 1.0 / (1.0 + math.exp(k * (z - b)))
    return int(_clamp(round(max_score * s), 0, max_score))
