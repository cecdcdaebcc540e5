"""Predictor — point estimate and sd from a trained calibration model.

The sd combines residual noise with per-weight bootstrap variance as if the
weights were independent::

    sd = sqrt(residual_sd**2 + sum(x_i**2 * weight_var_i))

This is a first-order, diagonal-only approximation; it deliberately ignores
covariance between weights, so correlated features may be over- or
under-covered.  A full covariance propagation would give different numbers.
"""

from __future__ import annotations

import math

import numpy as np

from affect_engine.calibration.features import vectorize
from affect_engine.calibration.models import CalibrationModel, Prediction, TrainingRow


def predict(model: CalibrationModel, row: TrainingRow) -> Prediction:
    x = vectorize(row, model.feature_ids)
    weights = np.asarray(model.weights, dtype=float)
    weight_var = np.asarray(model.weight_var, dtype=float)

    mean = float(weights @ x)
    variance = model.residual_sd**2 + float((x * x) @ weight_var)
    return Prediction(mean=mean, sd=math.sqrt(max(0.0, variance)))
