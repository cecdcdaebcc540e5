"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from affect_engine.calibration.models import TrainingRow
from affect_engine.config import Settings
from affect_engine.engine import AffectEngine
from affect_engine.longitudinal.models import JournalEntry

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def settings() -> Settings:
    """Defaults with a small bootstrap so engine tests stay fast."""
    return Settings(bootstrap_samples=20, min_training_n=10)


@pytest.fixture
def engine(settings: Settings) -> AffectEngine:
    return AffectEngine(settings=settings)


def make_linear_rows(n: int, *, seed: int = 7, noise_sd: float = 0.5) -> list[TrainingRow]:
    """Synthetic rows where mood is linear in valence, sleep quality and one theme."""
    rng = np.random.default_rng(seed)
    rows = []
    for _ in range(n):
        valence = float(rng.uniform(-1.0, 1.0))
        sleep_quality = float(rng.uniform(1.0, 10.0))
        work = bool(rng.random() < 0.4)
        mood = 5.0 + 2.0 * valence + 1.5 * (sleep_quality / 10.0) - 1.0 * work
        mood += float(rng.normal(0.0, noise_sd))
        rows.append(
            TrainingRow(
                affect_valence=valence,
                affect_arousal=float(rng.uniform(-1.0, 1.0)),
                sleep_quality=sleep_quality,
                feature_ids=frozenset({"theme:work"} if work else set()),
                mood=mood,
            )
        )
    return rows


@pytest.fixture
def linear_rows() -> list[TrainingRow]:
    return make_linear_rows(120)


def make_entry(
    i: int,
    mood: float,
    *,
    day: datetime = T0,
    anxiety: float | None = 5.0,
    content: str = "",
    **kwargs,
) -> JournalEntry:
    return JournalEntry(
        id=f"e{i}",
        created_at=day + timedelta(days=i),
        content=content or f"Entry number {i}.",
        mood_score=mood,
        anxiety_score=anxiety,
        **kwargs,
    )


@pytest.fixture
def make_rows():
    return make_linear_rows


@pytest.fixture
def entry_factory():
    return make_entry
