"""Held-out evaluation of the calibration model.

Rows are split chronologically (first 80% train, rest test).  The feature
vocabulary is chosen from the training portion only, then the model is
scored on the test portion for:

- **MAE** of the point estimate,
- **coverage80**: fraction of labels inside ``mean ± 1.2816·sd``,
- **ECE10**: expected calibration error over ten equal bins of the 1-10
  mood scale (weighted ``|mean(pred) - mean(label)|`` per bin).
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import structlog

from affect_engine.calibration.models import EvaluationReport, TrainingRow
from affect_engine.calibration.predictor import predict
from affect_engine.calibration.trainer import InsufficientTrainingDataError, train

logger = structlog.get_logger(__name__)

MIN_EVAL_ROWS = 12
Z_80 = 1.2816

_SCALE_LO = 1.0
_SCALE_HI = 10.0


def expected_calibration_error(pred: Sequence[float], y: Sequence[float], bins: int = 10) -> float:
    """ECE of point predictions against labels over ``bins`` bins of the 1-10 scale."""
    pred_arr = np.asarray(pred, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    n = len(pred_arr)
    if n == 0:
        return 0.0
    width = (_SCALE_HI - _SCALE_LO) / bins
    acc = 0.0
    for b in range(bins):
        lo = _SCALE_LO + b * width
        hi = lo + width
        if b == bins - 1:
            mask = (pred_arr >= lo) & (pred_arr <= hi)
        else:
            mask = (pred_arr >= lo) & (pred_arr < hi)
        count = int(mask.sum())
        if count == 0:
            continue
        acc += (count / n) * abs(pred_arr[mask].mean() - y_arr[mask].mean())
    return float(acc)


def evaluate_holdout(
    rows: Sequence[TrainingRow],
    *,
    train_fraction: float = 0.8,
    min_rows: int = MIN_EVAL_ROWS,
    **train_kwargs,
) -> EvaluationReport:
    """Train on the leading ``train_fraction`` of ``rows`` and score the rest.

    ``rows`` must be in chronological order.  Extra keyword arguments are
    forwarded to :func:`~affect_engine.calibration.trainer.train`.

    Raises
    ------
    InsufficientTrainingDataError
        If fewer than ``min_rows`` rows are available.
    """
    if len(rows) < min_rows:
        raise InsufficientTrainingDataError(min_rows, len(rows))

    split = int(len(rows) * train_fraction)
    train_rows, test_rows = list(rows[:split]), list(rows[split:])
    train_kwargs.setdefault("min_training_n", min(split, min_rows))
    model = train(train_rows, **train_kwargs)

    preds = [predict(model, r) for r in test_rows]
    y = np.asarray([r.mood for r in test_rows], dtype=float)
    mu = np.asarray([p.mean for p in preds], dtype=float)
    sd = np.asarray([p.sd for p in preds], dtype=float)

    mae = float(np.mean(np.abs(mu - y))) if len(y) else 0.0
    covered = (y >= mu - Z_80 * sd) & (y <= mu + Z_80 * sd)
    coverage80 = float(np.mean(covered)) if len(y) else 0.0
    ece10 = expected_calibration_error(mu, y, bins=10)

    logger.info(
        "calibration.evaluated",
        n_train=len(train_rows),
        n_test=len(test_rows),
        mae=round(mae, 3),
        coverage80=round(coverage80, 3),
        ece10=round(ece10, 3),
    )
    return EvaluationReport(
        n_train=len(train_rows),
        n_test=len(test_rows),
        mae=mae,
        coverage80=coverage80,
        ece10=ece10,
        model=model,
    )
