"""Feature vectorizer — labeled rows to fixed-length numeric vectors.

The vector is ``[bias, valence, arousal, sleep_hours, sleep_quality,
energy_level, medication_taken]`` followed by one ``0/1`` indicator per
selected feature id.  Which feature ids are used is decided by the trainer
(:func:`select_features`), so the vector length is model-specific; the
vectorizer itself holds no state.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

import numpy as np

from affect_engine.calibration.models import BASE_PREDICTOR_KEYS, TrainingRow

# Scale denominators mapping raw context onto roughly [0, 1].
_SLEEP_HOURS_MAX = 12.0
_TEN_POINT_MAX = 10.0


def _unit(value: float | None, denom: float) -> float:
    return min(1.0, max(0.0, (value or 0.0) / denom))


def base_predictors(row: TrainingRow) -> list[float]:
    """The fixed prefix of the vector, bias included."""
    return [
        1.0,
        row.affect_valence or 0.0,
        row.affect_arousal or 0.0,
        _unit(row.sleep_hours, _SLEEP_HOURS_MAX),
        _unit(row.sleep_quality, _TEN_POINT_MAX),
        _unit(row.energy_level, _TEN_POINT_MAX),
        1.0 if row.medication_taken else 0.0,
    ]


def vectorize(row: TrainingRow, feature_ids: Sequence[str]) -> np.ndarray:
    """Return the predictor vector for ``row`` under the given feature ids."""
    xs = base_predictors(row)
    xs.extend(1.0 if fid in row.feature_ids else 0.0 for fid in feature_ids)
    return np.asarray(xs, dtype=float)


def design_matrix(rows: Sequence[TrainingRow], feature_ids: Sequence[str]) -> np.ndarray:
    """Stack :func:`vectorize` over ``rows`` into an ``(n, p)`` matrix."""
    p = len(BASE_PREDICTOR_KEYS) + len(feature_ids)
    if not rows:
        return np.empty((0, p))
    return np.vstack([vectorize(r, feature_ids) for r in rows])


def build_predictor_keys(feature_ids: Iterable[str]) -> tuple[str, ...]:
    return (*BASE_PREDICTOR_KEYS, *feature_ids)


def select_features(
    rows: Sequence[TrainingRow],
    max_features: int,
    *,
    min_support: int = 1,
    min_features_to_use: int = 0,
    cap_by_rows: bool = False,
) -> list[str]:
    """Choose the subject's feature vocabulary from ``rows`` by frequency.

    Only the rows passed in are counted, so callers must pass training rows
    alone to keep held-out rows from leaking into the vocabulary.  Ties keep
    first-seen order.

    Parameters
    ----------
    max_features : int
        Upper bound on the number of indicators.
    min_support : int
        Drop features seen in fewer than this many rows.
    min_features_to_use : int
        If fewer features than this survive, return ``[]`` (base predictors
        only).
    cap_by_rows : bool
        Further cap the count at ``len(rows) // 2``.
    """
    limit = max_features
    if cap_by_rows:
        limit = min(limit, len(rows) // 2)

    freq: Counter[str] = Counter()
    for r in rows:
        # Sorted so first-seen order is deterministic within a row.
        freq.update(sorted(r.feature_ids))

    ranked = [fid for fid, count in freq.most_common() if count >= min_support]
    selected = ranked[: max(0, limit)]
    if len(selected) < min_features_to_use:
        return []
    return selected
