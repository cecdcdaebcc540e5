"""Affect engine orchestrator — the boundary the host application calls.

This module provides the high-level :class:`AffectEngine`.  It coordinates:

1. Recording observations into per-subject and population baselines
2. Scoring fresh extractions against those baselines (z, percentile, scale)
3. Training and atomically swapping per-subject calibration models
4. Calibrated prediction blended with retrieved analog episodes
5. On-demand longitudinal profiles

Persistence is delegated to a :class:`BaselineStore` / :class:`ModelStore`
pair; the in-memory stores are used when none are supplied.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from functools import partial
from typing import Sequence

import numpy as np
import structlog
from pydantic import BaseModel

from affect_engine.baseline import update_ewma
from affect_engine.calibration.blending import blend, effective_support, retrieval_estimate
from affect_engine.calibration.models import (
    BlendedEstimate,
    CalibrationModel,
    Prediction,
    RetrievalEpisode,
    TrainingRow,
)
from affect_engine.calibration.predictor import predict
from affect_engine.calibration.trainer import train
from affect_engine.config import Settings, get_settings
from affect_engine.logger import subject_context
from affect_engine.longitudinal.metrics import composite_score
from affect_engine.longitudinal.models import JournalEntry, LongitudinalProfile
from affect_engine.longitudinal.profile import compute_longitudinal_profile
from affect_engine.models import POPULATION_SUBJECT, BaselineStats, MetricName, Observation
from affect_engine.normalization import (
    anxiety_to_calmness,
    gated_z_score,
    map_to_validated_scale,
    z_to_percentile,
)
from affect_engine.storage.base import BaselineStore, ModelStore
from affect_engine.storage.memory import InMemoryBaselineStore, InMemoryModelStore

logger = structlog.get_logger(__name__)


class ExtractionScores(BaseModel):
    """Normalised view of one extraction, computed before baselines move.

    Every ``*_z`` is ``None`` while the corresponding baseline is still
    collecting.  Positive z means "better than usual" on both axes.
    """

    subject_id: str
    mood: float
    calmness: float
    composite: float
    mood_z: float | None = None
    calmness_z: float | None = None
    population_mood_z: float | None = None
    population_calmness_z: float | None = None
    mood_percentile: float | None = None
    phq9_equivalent: int | None = None
    gad7_equivalent: int | None = None


class AffectEngine:
    """Async orchestrator over the baseline and model stores.

    Parameters
    ----------
    baselines : BaselineStore | None
        Baseline persistence; defaults to :class:`InMemoryBaselineStore`.
    models : ModelStore | None
        Model persistence; defaults to :class:`InMemoryModelStore`.
    settings : Settings | None
        Tuning knobs; defaults to :func:`get_settings`.
    """

    def __init__(
        self,
        baselines: BaselineStore | None = None,
        models: ModelStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._baselines = baselines or InMemoryBaselineStore()
        self._models = models or InMemoryModelStore()
        self._settings = settings or get_settings()

    # ── Baselines ─────────────────────────────────────────────

    def _gated_z(self, raw: float, baseline: BaselineStats) -> float | None:
        return gated_z_score(
            raw,
            baseline,
            min_entries=self._settings.min_entries_for_z,
            std_floor=self._settings.std_floor,
            clamp=self._settings.z_score_clamp,
        )

    async def record_observation(self, observation: Observation) -> BaselineStats:
        """Fold one observation into its ``(subject, metric)`` baseline."""
        updated = await self._baselines.update(
            observation.subject_id,
            observation.metric_name,
            lambda current: update_ewma(
                current,
                observation.value,
                observation.timestamp,
                self._settings.half_life_days,
            ),
        )
        logger.debug(
            "engine.observation_recorded",
            subject_id=observation.subject_id,
            metric=observation.metric_name.value,
            count=updated.count,
        )
        return updated

    async def get_baseline(self, subject_id: str, metric: MetricName) -> BaselineStats:
        return await self._baselines.get(subject_id, metric)

    async def score_extraction(
        self,
        subject_id: str,
        mood: float,
        anxiety: float,
        now: datetime | None = None,
    ) -> ExtractionScores:
        """Score a new extraction, then update subject and population baselines.

        Anxiety is reverse-coded into calmness here, exactly once.  The
        z-scores describe the entry relative to the history *before* it.
        The subject lock, then the population lock, is held from the reads
        to the writes, so concurrent extractions for one subject score in
        sequence.
        """
        if subject_id == POPULATION_SUBJECT:
            raise ValueError(f"{POPULATION_SUBJECT!r} is reserved for the population baseline")
        now = now or datetime.now(timezone.utc)
        calmness = anxiety_to_calmness(anxiety)
        step = partial(update_ewma, now=now, half_life_days=self._settings.half_life_days)
        store = self._baselines

        with subject_context(subject_id):
            async with store.subject_lock(subject_id), store.subject_lock(POPULATION_SUBJECT):
                subj_mood = await store.get(subject_id, MetricName.MOOD)
                subj_calm = await store.get(subject_id, MetricName.CALMNESS)
                pop_mood = await store.get(POPULATION_SUBJECT, MetricName.MOOD)
                pop_calm = await store.get(POPULATION_SUBJECT, MetricName.CALMNESS)

                mood_z = self._gated_z(mood, subj_mood)
                calm_z = self._gated_z(calmness, subj_calm)

                scores = ExtractionScores(
                    subject_id=subject_id,
                    mood=mood,
                    calmness=calmness,
                    composite=composite_score(mood, anxiety),
                    mood_z=mood_z,
                    calmness_z=calm_z,
                    population_mood_z=self._gated_z(mood, pop_mood),
                    population_calmness_z=self._gated_z(calmness, pop_calm),
                    mood_percentile=z_to_percentile(mood_z) if mood_z is not None else None,
                    phq9_equivalent=map_to_validated_scale(mood_z, "phq9") if mood_z is not None else None,
                    gad7_equivalent=map_to_validated_scale(calm_z, "gad7") if calm_z is not None else None,
                )

                await store.put(subject_id, MetricName.MOOD, step(subj_mood, mood))
                await store.put(subject_id, MetricName.CALMNESS, step(subj_calm, calmness))
                await store.put(POPULATION_SUBJECT, MetricName.MOOD, step(pop_mood, mood))
                await store.put(POPULATION_SUBJECT, MetricName.CALMNESS, step(pop_calm, calmness))

            logger.info(
                "engine.extraction_scored",
                mood_z=mood_z,
                calmness_z=calm_z,
                collecting_baseline=mood_z is None,
            )
        return scores

    # ── Calibration ───────────────────────────────────────────

    async def get_model(self, subject_id: str) -> CalibrationModel | None:
        return await self._models.get(subject_id)

    async def train_subject(
        self,
        subject_id: str,
        rows: Sequence[TrainingRow],
        *,
        rng: np.random.Generator | int | None = None,
    ) -> CalibrationModel:
        """Retrain ``subject_id``'s model from scratch and swap it in.

        Runs the fit in a worker thread.  Concurrent calls for the same
        subject are serialised; readers keep seeing the previous model until
        the swap.

        Raises
        ------
        InsufficientTrainingDataError
            If fewer than ``min_training_n`` rows are supplied.
        """
        s = self._settings
        fit = partial(
            train,
            list(rows),
            s.ridge_lambda,
            s.max_features,
            s.bootstrap_samples,
            min_training_n=s.min_training_n,
            min_feature_support=s.min_feature_support,
            min_features_to_use=s.min_features_to_use,
            cap_features_by_rows=s.cap_features_by_rows,
            rng=rng,
            workers=s.bootstrap_workers,
        )
        with subject_context(subject_id):
            async with self._models.training_lock(subject_id):
                model = await asyncio.to_thread(fit)
                await self._models.replace(subject_id, model)
            logger.info(
                "engine.model_replaced",
                model_version=model.model_version,
                training_n=model.training_n,
            )
        return model

    async def predict_calibrated(
        self,
        subject_id: str,
        row: TrainingRow,
        episodes: Sequence[RetrievalEpisode] = (),
    ) -> BlendedEstimate:
        """Model prediction blended with retrieved analogs.

        Without a trained model the retrieval estimate stands in (``alpha =
        0``); with neither, the configured prior is returned (``alpha = 1``).
        """
        s = self._settings
        model = await self._models.get(subject_id)

        if model is not None:
            return blend(
                predict(model, row),
                episodes,
                alpha_min=s.alpha_min,
                alpha_max=s.alpha_max,
                disagreement_cap=s.variance_disagreement_cap,
            )

        support = effective_support(episodes)
        retrieved = retrieval_estimate(episodes)
        if retrieved is not None:
            logger.info("engine.no_model_retrieval_only", subject_id=subject_id, support=support)
            return BlendedEstimate(
                mean=retrieved.mean,
                sd=retrieved.sd,
                alpha=0.0,
                effective_support=support,
                model=None,
                retrieved=retrieved,
            )

        logger.info("engine.no_model_prior", subject_id=subject_id)
        prior = Prediction(mean=s.prior_mood_mean, sd=s.prior_mood_sd)
        return BlendedEstimate(
            mean=prior.mean,
            sd=prior.sd,
            alpha=1.0,
            effective_support=0.0,
            model=prior,
            retrieved=None,
        )

    # ── Longitudinal ──────────────────────────────────────────

    def longitudinal_profile(
        self,
        entries: Sequence[JournalEntry],
        now: datetime | None = None,
    ) -> LongitudinalProfile:
        return compute_longitudinal_profile(entries, now)
