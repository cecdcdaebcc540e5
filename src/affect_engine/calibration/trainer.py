"""Calibration trainer — per-subject ridge regression with bootstrap uncertainty.

Training always starts from scratch over the full row set; there is no
incremental variant.  The result is a new, frozen :class:`CalibrationModel`.

Uncertainty
-----------
Ridge regression's analytic weight covariance needs a noise model the
pipeline does not want to commit to, so per-weight variance is estimated
empirically: ``B`` bootstrap resamples of the training rows are refit and
the per-coordinate sample variance of the ``B`` weight vectors becomes
``weight_var``.

Determinism
-----------
All resample indices are drawn up front from one seedable
:class:`numpy.random.Generator`, so the model is identical whether the
refits run serially or on a thread pool.
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Sequence

import numpy as np
import structlog

from affect_engine.calibration.features import (
    build_predictor_keys,
    design_matrix,
    select_features,
)
from affect_engine.calibration.linalg import ridge_regression, sample_variance
from affect_engine.calibration.models import (
    BASE_PREDICTOR_KEYS,
    MODEL_VERSION,
    CalibrationModel,
    FeatureEffect,
    TrainingRow,
)

logger = structlog.get_logger(__name__)

# ── Defaults ──────────────────────────────────────────────────

DEFAULT_LAMBDA = 1.0
DEFAULT_MAX_FEATURES = 120
DEFAULT_BOOTSTRAP_SAMPLES = 50
MIN_TRAINING_N = 10


class InsufficientTrainingDataError(ValueError):
    """Raised when a subject has too few labeled rows to train on."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(f"Need at least {required} labeled rows; have {available}.")


def bootstrap_weight_variance(
    X: np.ndarray,
    y: np.ndarray,
    lam: float,
    samples: int,
    rng: np.random.Generator,
    *,
    workers: int = 1,
) -> np.ndarray:
    """Per-coordinate variance of ridge weights over ``samples`` resamples."""
    n, p = X.shape
    if samples < 2 or n == 0:
        return np.zeros(p)

    indices = rng.integers(0, n, size=(samples, n))

    def _refit(idx: np.ndarray) -> np.ndarray:
        return ridge_regression(X[idx], y[idx], lam)

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            fits = list(pool.map(_refit, indices))
    else:
        fits = [_refit(idx) for idx in indices]

    return sample_variance(np.vstack(fits), axis=0)


def train(
    rows: Sequence[TrainingRow],
    lambda_: float = DEFAULT_LAMBDA,
    max_features: int = DEFAULT_MAX_FEATURES,
    bootstrap_samples: int = DEFAULT_BOOTSTRAP_SAMPLES,
    *,
    min_training_n: int = MIN_TRAINING_N,
    min_feature_support: int = 1,
    min_features_to_use: int = 0,
    cap_features_by_rows: bool = False,
    rng: np.random.Generator | int | None = None,
    workers: int = 1,
    model_version: str = MODEL_VERSION,
    now: datetime | None = None,
) -> CalibrationModel:
    """Fit a :class:`CalibrationModel` over ``rows``.

    Parameters
    ----------
    rows : Sequence[TrainingRow]
        The subject's labeled rows (training portion only).
    lambda_ : float
        Ridge penalty, applied to the bias as well.
    max_features : int
        Upper bound on feature indicators; see :func:`select_features` for
        the remaining selection knobs.
    bootstrap_samples : int
        Number of bootstrap refits ``B`` used for ``weight_var``.
    rng : Generator | int | None
        Random source (or seed) for resampling.
    workers : int
        Thread-pool size for bootstrap refits; ``1`` runs them inline.

    Raises
    ------
    InsufficientTrainingDataError
        If ``len(rows) < min_training_n``.
    """
    if len(rows) < min_training_n:
        raise InsufficientTrainingDataError(min_training_n, len(rows))

    feature_ids = select_features(
        rows,
        max_features,
        min_support=min_feature_support,
        min_features_to_use=min_features_to_use,
        cap_by_rows=cap_features_by_rows,
    )
    X = design_matrix(rows, feature_ids)
    y = np.asarray([r.mood for r in rows], dtype=float)

    weights = ridge_regression(X, y, lambda_)
    residual_sd = math.sqrt(float(sample_variance(y - X @ weights)))
    if not math.isfinite(residual_sd):
        residual_sd = 0.0

    generator = np.random.default_rng(rng)
    weight_var = bootstrap_weight_variance(
        X, y, lambda_, bootstrap_samples, generator, workers=workers
    )

    model = CalibrationModel(
        model_version=model_version,
        updated_at=now or datetime.now(timezone.utc),
        lambda_=lambda_,
        residual_sd=residual_sd,
        predictor_keys=build_predictor_keys(feature_ids),
        weights=tuple(float(w) for w in weights),
        weight_var=tuple(float(v) for v in weight_var),
        training_n=len(rows),
    )

    logger.info(
        "calibration.trained",
        training_n=model.training_n,
        n_features=len(feature_ids),
        residual_sd=round(residual_sd, 4),
        bootstrap_samples=bootstrap_samples,
    )
    return model


def feature_effects(model: CalibrationModel) -> list[FeatureEffect]:
    """Per-feature mean effect and bootstrap sd, in model order."""
    offset = len(BASE_PREDICTOR_KEYS)
    return [
        FeatureEffect(
            feature_id=fid,
            effect_mean=model.weights[offset + i],
            effect_sd=math.sqrt(max(0.0, model.weight_var[offset + i])),
        )
        for i, fid in enumerate(model.feature_ids)
    ]
