"""Centralised engine settings loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """All tuning knobs for the affect-calibration engine.

    Values are read from environment variables first, then from a *.env* file
    located at the project root.  Every variable lives in the flat
    ``AFFECT_ENGINE_`` namespace (stripped automatically by
    *pydantic-settings*).  Defaults match the numeric contract shared with
    the surrounding application.
    """

    model_config = SettingsConfigDict(
        env_prefix="AFFECT_ENGINE_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ───────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ── Baselines / z-scores ──────────────────────────────────
    half_life_days: float = 45.0
    std_floor: float = 0.75
    z_score_clamp: float = 5.0
    min_entries_for_z: int = 5  # null z until this many observations

    # ── Calibration (ridge + bootstrap) ───────────────────────
    ridge_lambda: float = 1.0
    max_features: int = 120
    min_training_n: int = 10
    bootstrap_samples: int = 50
    bootstrap_workers: int = 1
    min_feature_support: int = 2
    min_features_to_use: int = 5
    cap_features_by_rows: bool = True  # cap selected features at N // 2

    # ── Retrieval blending ────────────────────────────────────
    alpha_min: float = 0.25
    alpha_max: float = 0.75
    variance_disagreement_cap: float = 4.0
    prior_mood_mean: float = 5.0
    prior_mood_sd: float = 2.0

    # ── Evidence ──────────────────────────────────────────────
    evidence_max_reprompts: int = 1


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
