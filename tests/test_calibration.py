"""Tests for the calibration subsystem: features, ridge + bootstrap, prediction."""

from __future__ import annotations

import math

import numpy as np
import pytest
from pydantic import ValidationError

from affect_engine.calibration.evaluation import evaluate_holdout, expected_calibration_error
from affect_engine.calibration.features import (
    build_predictor_keys,
    design_matrix,
    select_features,
    vectorize,
)
from affect_engine.calibration.linalg import ridge_regression, sample_variance
from affect_engine.calibration.models import (
    BASE_PREDICTOR_KEYS,
    MODEL_VERSION,
    CalibrationModel,
    RetrievalEpisode,
    TrainingRow,
)
from affect_engine.calibration.predictor import predict
from affect_engine.calibration.trainer import (
    InsufficientTrainingDataError,
    bootstrap_weight_variance,
    feature_effects,
    train,
)


def _model(weights, weight_var, residual_sd=0.5, features=()):
    return CalibrationModel(
        lambda_=1.0,
        residual_sd=residual_sd,
        predictor_keys=build_predictor_keys(features),
        weights=tuple(weights),
        weight_var=tuple(weight_var),
        training_n=10,
    )


# ── Feature vectorizer ───────────────────────────────────────


class TestVectorize:
    def test_layout_and_scaling(self):
        row = TrainingRow(
            affect_valence=0.4,
            affect_arousal=-0.2,
            sleep_hours=6.0,
            sleep_quality=8.0,
            energy_level=15.0,
            medication_taken=True,
            feature_ids=frozenset({"theme:work"}),
            mood=6.0,
        )
        x = vectorize(row, ["theme:work", "theme:family"])
        assert x.tolist() == pytest.approx([1.0, 0.4, -0.2, 0.5, 0.8, 1.0, 1.0, 1.0, 0.0])

    def test_missing_fields_read_as_zero(self):
        x = vectorize(TrainingRow(mood=5.0), [])
        assert x.tolist() == [1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0]
        assert len(x) == len(BASE_PREDICTOR_KEYS)

    def test_design_matrix_shape(self):
        rows = [TrainingRow(mood=5.0), TrainingRow(feature_ids=frozenset({"a"}), mood=5.0)]
        X = design_matrix(rows, ["a"])
        assert X.shape == (2, 8)
        assert X[:, -1].tolist() == [0.0, 1.0]

    def test_empty_design_matrix(self):
        assert design_matrix([], ["a", "b"]).shape == (0, 9)


class TestSelectFeatures:
    def _rows(self, *sets):
        return [TrainingRow(feature_ids=frozenset(s), mood=5.0) for s in sets]

    def test_ranked_by_frequency_ties_first_seen(self):
        rows = self._rows({"b", "a"}, {"a"}, {"c"})
        assert select_features(rows, 10) == ["a", "b", "c"]

    def test_top_k(self):
        rows = self._rows({"a", "b"}, {"a", "c"}, {"a", "b"})
        assert select_features(rows, 2) == ["a", "b"]

    def test_min_support_drops_rare(self):
        rows = self._rows({"a", "b"}, {"a"}, {"c"})
        assert select_features(rows, 10, min_support=2) == ["a"]

    def test_too_few_survivors_uses_none(self):
        rows = self._rows({"a"}, {"a"}, {"b"}, {"b"})
        assert select_features(rows, 10, min_features_to_use=5) == []

    def test_cap_by_rows(self):
        rows = self._rows({"a", "b", "c", "d"}, {"a", "b", "c", "d"})
        assert select_features(rows, 10, cap_by_rows=True) == ["a"]


# ── Linear algebra ───────────────────────────────────────────


class TestLinalg:
    def test_ridge_recovers_weights_with_tiny_penalty(self):
        rng = np.random.default_rng(0)
        X = np.column_stack([np.ones(200), rng.normal(size=200)])
        y = X @ np.array([2.0, -3.0])
        w = ridge_regression(X, y, 1e-9)
        assert w == pytest.approx([2.0, -3.0], abs=1e-6)

    def test_penalty_shrinks_bias(self):
        X = np.ones((4, 1))
        y = np.full(4, 10.0)
        # (4 + 1) w = 40
        assert ridge_regression(X, y, 1.0)[0] == pytest.approx(8.0)

    def test_singular_system_returns_zeros(self):
        w = ridge_regression(np.zeros((5, 3)), np.ones(5), 0.0)
        assert w.tolist() == [0.0, 0.0, 0.0]

    def test_sample_variance(self):
        assert sample_variance(np.array([1.0, 2.0, 3.0])) == pytest.approx(1.0)
        assert sample_variance(np.array([4.0])) == 0.0


# ── Trainer ──────────────────────────────────────────────────


class TestTrain:
    def test_insufficient_rows(self, make_rows):
        rows = make_rows(9)
        with pytest.raises(InsufficientTrainingDataError) as exc_info:
            train(rows)
        assert exc_info.value.required == 10
        assert exc_info.value.available == 9
        assert isinstance(exc_info.value, ValueError)

    def test_model_shape(self, linear_rows):
        model = train(linear_rows, rng=1)
        assert model.model_version == MODEL_VERSION
        assert model.training_n == len(linear_rows)
        assert model.predictor_keys[:7] == BASE_PREDICTOR_KEYS
        assert model.feature_ids == ("theme:work",)
        assert len(model.weights) == len(model.weight_var) == len(model.predictor_keys)
        assert all(v >= 0 for v in model.weight_var)
        assert model.residual_sd > 0

    def test_learns_known_effects(self, linear_rows):
        model = train(linear_rows, lambda_=0.01, rng=1)
        weights = dict(zip(model.predictor_keys, model.weights))
        assert weights["affect_valence"] == pytest.approx(2.0, abs=0.3)
        assert weights["theme:work"] == pytest.approx(-1.0, abs=0.3)

    def test_seeded_bootstrap_is_deterministic(self, linear_rows):
        a = train(linear_rows, rng=42)
        b = train(linear_rows, rng=42)
        assert a.weight_var == b.weight_var

    def test_thread_pool_matches_serial(self, linear_rows):
        serial = train(linear_rows, rng=np.random.default_rng(5), workers=1)
        pooled = train(linear_rows, rng=np.random.default_rng(5), workers=4)
        assert pooled.weights == serial.weights
        assert pooled.weight_var == pytest.approx(serial.weight_var)

    def test_single_bootstrap_sample_gives_zero_variance(self, linear_rows):
        model = train(linear_rows, bootstrap_samples=1, rng=0)
        assert set(model.weight_var) == {0.0}

    def test_bootstrap_variance_positive_with_noise(self):
        rng = np.random.default_rng(3)
        X = np.column_stack([np.ones(50), rng.normal(size=50)])
        y = X @ np.array([1.0, 0.5]) + rng.normal(size=50)
        var = bootstrap_weight_variance(X, y, 1.0, 30, np.random.default_rng(9))
        assert var.shape == (2,)
        assert (var > 0).all()

    def test_feature_effects(self, linear_rows):
        model = train(linear_rows, rng=2)
        effects = feature_effects(model)
        assert [e.feature_id for e in effects] == ["theme:work"]
        assert effects[0].effect_mean == model.weights[7]
        assert effects[0].effect_sd == pytest.approx(math.sqrt(model.weight_var[7]))


# ── Model validation ─────────────────────────────────────────


class TestCalibrationModel:
    def test_length_mismatch_rejected(self):
        with pytest.raises(ValidationError):
            _model([0.0] * 7, [0.0] * 6)

    def test_base_prefix_required(self):
        with pytest.raises(ValidationError):
            CalibrationModel(
                lambda_=1.0,
                residual_sd=0.1,
                predictor_keys=("x",) * 7,
                weights=(0.0,) * 7,
                weight_var=(0.0,) * 7,
                training_n=1,
            )

    def test_lambda_alias(self):
        model = _model([0.0] * 7, [0.0] * 7)
        assert model.model_dump(by_alias=True)["lambda"] == 1.0
        again = CalibrationModel.model_validate(model.model_dump(by_alias=True))
        assert again == model

    def test_frozen(self):
        model = _model([0.0] * 7, [0.0] * 7)
        with pytest.raises(ValidationError):
            model.residual_sd = 3.0


class TestTrainingRow:
    def test_label_required(self):
        with pytest.raises(ValidationError):
            TrainingRow(affect_valence=0.2)


class TestRetrievalEpisode:
    def test_similarity_float_noise_clamped(self):
        assert RetrievalEpisode(similarity=1.0000000000000002, value=5.0).similarity == 1.0
        assert RetrievalEpisode(similarity=-1.0000000000000002, value=5.0).similarity == -1.0

    def test_similarity_in_range_kept(self):
        assert RetrievalEpisode(similarity=-0.4, value=5.0).similarity == -0.4

    @pytest.mark.parametrize("similarity", [1.5, -1.01, float("nan")])
    def test_similarity_out_of_range_rejected(self, similarity):
        with pytest.raises(ValidationError):
            RetrievalEpisode(similarity=similarity, value=5.0)


# ── Predictor ────────────────────────────────────────────────


class TestPredict:
    def test_mean_and_diagonal_sd(self):
        model = _model(
            [5.0, 2.0, 0.0, 0.0, 0.0, 0.0, 0.0, -1.0],
            [0.01, 0.04, 0.0, 0.0, 0.0, 0.0, 0.0, 0.09],
            residual_sd=0.5,
            features=("theme:work",),
        )
        row = TrainingRow(affect_valence=0.5, feature_ids=frozenset({"theme:work"}), mood=5.0)
        p = predict(model, row)
        assert p.mean == pytest.approx(5.0 + 1.0 - 1.0)
        expected_var = 0.25 + 0.01 + 0.25 * 0.04 + 0.09
        assert p.sd == pytest.approx(math.sqrt(expected_var))

    def test_unknown_features_ignored(self):
        model = _model([5.0] + [0.0] * 6, [0.0] * 7, residual_sd=1.0)
        p = predict(model, TrainingRow(feature_ids=frozenset({"theme:new"}), mood=5.0))
        assert p.mean == pytest.approx(5.0)
        assert p.sd == pytest.approx(1.0)


# ── End-to-end ───────────────────────────────────────────────


class TestHeldOut:
    def test_train_then_predict_held_out(self, make_rows):
        train_rows = make_rows(150, seed=7)
        test_rows = make_rows(80, seed=11)
        model = train(train_rows, bootstrap_samples=50, rng=123)

        preds = [predict(model, r) for r in test_rows]
        errors = [abs(p.mean - r.mood) for p, r in zip(preds, test_rows)]
        covered = [
            p.mean - 1.2816 * p.sd <= r.mood <= p.mean + 1.2816 * p.sd
            for p, r in zip(preds, test_rows)
        ]
        assert sum(errors) / len(errors) < 0.7
        assert 0.6 <= sum(covered) / len(covered) <= 0.97

    def test_evaluate_holdout_report(self, make_rows):
        report = evaluate_holdout(make_rows(100, seed=3), rng=4)
        assert report.n_train == 80
        assert report.n_test == 20
        assert report.mae < 0.8
        assert 0.0 <= report.coverage80 <= 1.0
        assert report.ece10 >= 0.0

    def test_vocabulary_from_training_portion_only(self, make_rows):
        rows = make_rows(40, seed=5)
        late = [r.model_copy(update={"feature_ids": frozenset({"theme:late"})}) for r in rows[32:]]
        report = evaluate_holdout(rows[:32] + late, rng=0)
        assert "theme:late" not in report.model.feature_ids

    def test_evaluate_needs_minimum_rows(self, make_rows):
        with pytest.raises(InsufficientTrainingDataError):
            evaluate_holdout(make_rows(11))

    def test_ece_zero_for_perfect_predictions(self):
        values = [1.5, 3.2, 5.0, 7.7, 9.9]
        assert expected_calibration_error(values, values) == pytest.approx(0.0)
