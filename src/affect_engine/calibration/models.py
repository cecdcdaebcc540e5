"""Pydantic models for the per-subject calibration subsystem.

These models represent:
- Labeled training rows (affect signals + self-report context + theme ids)
- The trained ridge/bootstrap calibration model
- Point predictions with uncertainty and retrieval-blended estimates
- Held-out evaluation summaries
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MODEL_VERSION = "calib_ridge_bootstrap_v1"

# Similarities this far outside [-1, 1] are float noise from the search backend.
SIMILARITY_TOLERANCE = 1e-6

# Fixed predictors that precede the per-subject feature indicators.
BASE_PREDICTOR_KEYS: tuple[str, ...] = (
    "bias",
    "affect_valence",
    "affect_arousal",
    "sleep_hours",
    "sleep_quality",
    "energy_level",
    "medication_taken",
)


# ── Training input ────────────────────────────────────────────


class TrainingRow(BaseModel):
    """One labeled day/entry for a subject.

    Missing numeric context is represented as ``None`` and read as ``0`` by
    the vectorizer.  ``mood`` is the self-reported label (1-10).
    """

    model_config = ConfigDict(frozen=True)

    affect_valence: float | None = None
    affect_arousal: float | None = None
    sleep_hours: float | None = None
    sleep_quality: float | None = None
    energy_level: float | None = None
    medication_taken: bool | None = None
    feature_ids: frozenset[str] = Field(default_factory=frozenset)
    mood: float


# ── Trained model ────────────────────────────────────────────


class CalibrationModel(BaseModel):
    """A subject's trained calibration model.

    Created and replaced wholesale on each retrain; never mutated.
    ``weight_var`` is the diagonal bootstrap variance of ``weights``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=())

    model_version: str = MODEL_VERSION
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    lambda_: float = Field(alias="lambda", ge=0.0)
    residual_sd: float = Field(ge=0.0)
    predictor_keys: tuple[str, ...]
    weights: tuple[float, ...]
    weight_var: tuple[float, ...]
    training_n: int = Field(ge=0)

    @field_validator("predictor_keys")
    @classmethod
    def _starts_with_base_predictors(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if v[: len(BASE_PREDICTOR_KEYS)] != BASE_PREDICTOR_KEYS:
            raise ValueError(f"predictor_keys must start with {list(BASE_PREDICTOR_KEYS)}")
        return v

    @model_validator(mode="after")
    def _lengths_match(self) -> CalibrationModel:
        n = len(self.predictor_keys)
        if len(self.weights) != n or len(self.weight_var) != n:
            raise ValueError(
                f"weights ({len(self.weights)}) and weight_var ({len(self.weight_var)}) "
                f"must match predictor_keys ({n})"
            )
        return self

    @property
    def feature_ids(self) -> tuple[str, ...]:
        """Per-subject feature indicators (the non-fixed tail of the keys)."""
        return self.predictor_keys[len(BASE_PREDICTOR_KEYS):]


class FeatureEffect(BaseModel):
    """Learned association between a recurring theme and mood (lag 0).

    Statistical summary only, not a causal claim.
    """

    feature_id: str
    effect_mean: float
    effect_sd: float


# ── Predictions ──────────────────────────────────────────────


class Prediction(BaseModel):
    """A point estimate with a standard deviation."""

    model_config = ConfigDict(frozen=True)

    mean: float
    sd: float = Field(ge=0.0)


class RetrievalEpisode(BaseModel):
    """A historical analog returned by the similarity-search collaborator.

    Negative similarities are kept here and zeroed only when weighting.
    Values just outside ``[-1, 1]`` are clamped into range.
    """

    model_config = ConfigDict(frozen=True)

    similarity: float
    value: float
    entry_id: str | None = None
    timestamp: datetime | None = None

    @field_validator("similarity")
    @classmethod
    def _clamp_similarity(cls, v: float) -> float:
        if not -1.0 - SIMILARITY_TOLERANCE <= v <= 1.0 + SIMILARITY_TOLERANCE:
            raise ValueError(f"similarity must be within [-1, 1], got {v}")
        return min(1.0, max(-1.0, v))


class BlendedEstimate(BaseModel):
    """Confidence-weighted blend of the model and the retrieval estimate."""

    mean: float
    sd: float = Field(ge=0.0)
    alpha: float = Field(description="Weight given to the model estimate.")
    effective_support: float = Field(ge=0.0)
    model: Prediction | None = None
    retrieved: Prediction | None = None


# ── Evaluation ───────────────────────────────────────────────


class EvaluationReport(BaseModel):
    """Held-out accuracy and calibration of a chronological train/test split."""

    n_train: int
    n_test: int
    mae: float
    coverage80: float = Field(description="Fraction of test labels inside the 80% interval.")
    ece10: float = Field(description="Expected calibration error over 10 bins of the 1-10 scale.")
    model: CalibrationModel
