"""Retrieval blender — mix the parametric model with similar past episodes.

Alpha (the model's weight) shrinks as retrieval support grows::

    alpha = clamp(0.75 - 0.15 * ln(1 + support), ALPHA_MIN, ALPHA_MAX)

Support is the similarity-weighted count of analogs, so ten weak matches do
not outvote three strong ones.  The log term makes alpha saturate rather
than collapse to the floor as support grows.
"""

from __future__ import annotations

import math
from typing import Sequence

from affect_engine.calibration.models import BlendedEstimate, Prediction, RetrievalEpisode

# ── Constants ─────────────────────────────────────────────────

ALPHA_MIN = 0.25
ALPHA_MAX = 0.75
VARIANCE_DISAGREEMENT_CAP = 4.0

_ALPHA_INTERCEPT = 0.75
_ALPHA_LOG_SLOPE = 0.15
_DISAGREEMENT_WEIGHT = 0.25


def effective_support(episodes: Sequence[RetrievalEpisode]) -> float:
    """Sum of non-negative similarities (negative ones contribute zero)."""
    return sum(max(0.0, e.similarity) for e in episodes)


def retrieval_estimate(episodes: Sequence[RetrievalEpisode]) -> Prediction | None:
    """Similarity-weighted mean and weighted sd of episode values.

    ``None`` when no episode has positive similarity.
    """
    weights = [max(0.0, e.similarity) for e in episodes]
    w_sum = sum(weights)
    if w_sum <= 0:
        return None
    mu = sum(w * e.value for w, e in zip(weights, episodes)) / w_sum
    var = sum(w * (e.value - mu) ** 2 for w, e in zip(weights, episodes)) / w_sum
    return Prediction(mean=mu, sd=math.sqrt(max(0.0, var)))


def blend_alpha(
    support: float,
    *,
    alpha_min: float = ALPHA_MIN,
    alpha_max: float = ALPHA_MAX,
) -> float:
    """Model weight for a given effective support (non-increasing in support)."""
    raw = _ALPHA_INTERCEPT - _ALPHA_LOG_SLOPE * math.log1p(max(0.0, support))
    return min(alpha_max, max(alpha_min, raw))


def blend(
    model_estimate: Prediction,
    episodes: Sequence[RetrievalEpisode],
    *,
    alpha_min: float = ALPHA_MIN,
    alpha_max: float = ALPHA_MAX,
    disagreement_cap: float = VARIANCE_DISAGREEMENT_CAP,
) -> BlendedEstimate:
    """Confidence-weighted blend of ``model_estimate`` with retrieved analogs.

    ``variance = alpha²·sd_model² + (1-alpha)²·sd_retr² + 0.25·min(Δ², cap)``
    where ``Δ`` is the gap between the two means.  With zero support the
    result is the model estimate itself at ``alpha = alpha_max``.
    """
    support = effective_support(episodes)
    alpha = blend_alpha(support, alpha_min=alpha_min, alpha_max=alpha_max)
    retrieved = retrieval_estimate(episodes)

    if retrieved is None:
        return BlendedEstimate(
            mean=model_estimate.mean,
            sd=model_estimate.sd,
            alpha=alpha,
            effective_support=support,
            model=model_estimate,
            retrieved=None,
        )

    mean = alpha * model_estimate.mean + (1 - alpha) * retrieved.mean
    disagreement = min((model_estimate.mean - retrieved.mean) ** 2, disagreement_cap)
    variance = (
        alpha**2 * model_estimate.sd**2
        + (1 - alpha) ** 2 * retrieved.sd**2
        + _DISAGREEMENT_WEIGHT * disagreement
    )
    return BlendedEstimate(
        mean=mean,
        sd=math.sqrt(max(0.0, variance)),
        alpha=alpha,
        effective_support=support,
        model=model_estimate,
        retrieved=retrieved,
    )
