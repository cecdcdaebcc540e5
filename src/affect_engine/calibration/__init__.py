"""Calibration — per-subject predictive model with honest uncertainty.

Architecture
------------
1. **Feature vectorizer** (`features.py`)
   - Fixed affect / self-report prefix plus per-subject theme indicators
   - Frequency-based vocabulary selection over training rows only

2. **Trainer** (`trainer.py`)
   - Closed-form ridge regression (bias regularized)
   - Bootstrap resampling for diagonal per-weight variance

3. **Predictor** (`predictor.py`)
   - Point estimate plus first-order sd (residual + weight variance)

4. **Retrieval blender** (`blending.py`)
   - Support-dependent blend with similar historical episodes

5. **Evaluation** (`evaluation.py`)
   - Chronological hold-out MAE, 80% coverage and calibration error
"""

from affect_engine.calibration.blending import blend, blend_alpha, effective_support
from affect_engine.calibration.models import (
    BlendedEstimate,
    CalibrationModel,
    EvaluationReport,
    FeatureEffect,
    Prediction,
    RetrievalEpisode,
    TrainingRow,
)
from affect_engine.calibration.predictor import predict
from affect_engine.calibration.trainer import InsufficientTrainingDataError, train

__all__ = [
    "BlendedEstimate",
    "CalibrationModel",
    "EvaluationReport",
    "FeatureEffect",
    "InsufficientTrainingDataError",
    "Prediction",
    "RetrievalEpisode",
    "TrainingRow",
    "blend",
    "blend_alpha",
    "effective_support",
    "predict",
    "train",
]
