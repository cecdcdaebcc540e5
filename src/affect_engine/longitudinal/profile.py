"""Longitudinal profile — structured, quantified summary of a subject's history.

Every number here is recomputed from the entry list; nothing is persisted.
The output carries no interpretive language, only metrics, ranked tags and
a handful of representative excerpts.
"""

from __future__ import annotations

import math
import statistics
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Sequence

from affect_engine.longitudinal.metrics import linear_slope
from affect_engine.longitudinal.models import (
    BaselineMetrics,
    DataRange,
    EvidenceSnippet,
    JournalEntry,
    LongitudinalProfile,
    RankedItem,
    RecurrentThemes,
    SentimentTrend,
    TrendIndicators,
)

# ── Constants ─────────────────────────────────────────────────

DEFAULT_ANXIETY = 5.0
TOP_N_THEMES = 8
THEME_PERIOD_DAYS = 30
SENTIMENT_EPSILON = 0.05
MIN_SENTIMENT_POINTS = 3
EVIDENCE_LIMIT = 3
LOW_MOOD_THRESHOLD = 4.0
RECENT_WINDOW = 10
EXCERPT_MAX_LEN = 180

_SECONDS_PER_DAY = 86_400.0

RUMINATION_TERMS: tuple[str, ...] = (
    "rumination",
    "overthinking",
    "ruminating",
    "obsessive thoughts",
    "can't stop thinking",
    "dwelling",
    "repetitive thoughts",
)

HOPELESSNESS_TERMS: tuple[str, ...] = (
    "hopelessness",
    "hopeless",
    "worthlessness",
    "worthless",
    "no point",
    "giving up",
    "despair",
    "helpless",
    "helplessness",
)


def _utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _anxiety(entry: JournalEntry) -> float:
    return entry.anxiety_score if entry.anxiety_score is not None else DEFAULT_ANXIETY


def _sorted_oldest_first(entries: Sequence[JournalEntry]) -> list[JournalEntry]:
    usable = [e for e in entries if math.isfinite(e.mood_score)]
    return sorted(usable, key=lambda e: _utc(e.created_at))


# ── Baseline ──────────────────────────────────────────────────


def _describe(values: Sequence[float]) -> tuple[float, float]:
    if not values:
        return 0.0, 0.0
    m = statistics.fmean(values)
    if len(values) < 2:
        return m, 0.0
    return m, statistics.stdev(values)


def compute_baseline_metrics(ordered: Sequence[JournalEntry]) -> BaselineMetrics:
    """Descriptive statistics over ``ordered`` (oldest-first)."""
    if not ordered:
        return BaselineMetrics()

    moods = [e.mood_score for e in ordered]
    anxieties = [_anxiety(e) for e in ordered]
    phq9s = [e.phq9_estimate for e in ordered if e.phq9_estimate is not None]
    gad7s = [e.gad7_estimate for e in ordered if e.gad7_estimate is not None]

    mood_mean, mood_std = _describe(moods)
    anx_mean, anx_std = _describe(anxieties)

    volatility = None
    if len(moods) >= 2:
        # Mean absolute successive difference
        diffs = [abs(b - a) for a, b in zip(moods, moods[1:])]
        volatility = round(sum(diffs) / len(diffs), 2)

    return BaselineMetrics(
        mean_mood=round(mood_mean, 2),
        mood_std=round(mood_std, 2),
        mean_anxiety=round(anx_mean, 2),
        anxiety_std=round(anx_std, 2),
        mean_phq9=round(statistics.fmean(phq9s), 1) if phq9s else None,
        mean_gad7=round(statistics.fmean(gad7s), 1) if gad7s else None,
        volatility_index=volatility,
        sample_count=len(ordered),
    )


# ── Trends ────────────────────────────────────────────────────


def _daily_slope(entries: Sequence[JournalEntry], values: Sequence[float]) -> float | None:
    if not entries:
        return None
    origin = _utc(entries[0].created_at)
    points = [
        ((_utc(e.created_at) - origin).total_seconds() / _SECONDS_PER_DAY, v)
        for e, v in zip(entries, values)
    ]
    per_day = linear_slope(points)
    return round(per_day, 3) if per_day is not None else None


def _window(ordered: Sequence[JournalEntry], now: datetime, days: int) -> list[JournalEntry]:
    cutoff = now - timedelta(days=days)
    return [e for e in ordered if _utc(e.created_at) >= cutoff]


def compute_trends(
    ordered: Sequence[JournalEntry],
    baseline: BaselineMetrics,
    now: datetime,
) -> TrendIndicators:
    """7/14-day slopes (per day) and the latest entry's z against ``baseline``."""
    if len(ordered) < 2:
        return TrendIndicators()

    last7 = _window(ordered, now, 7)
    last14 = _window(ordered, now, 14)
    latest = ordered[-1]

    latest_z = None
    if baseline.mean_mood is not None and baseline.mood_std:
        latest_z = round((latest.mood_score - baseline.mean_mood) / baseline.mood_std, 2)
    latest_anx_z = None
    if baseline.mean_anxiety is not None and baseline.anxiety_std:
        latest_anx_z = round((_anxiety(latest) - baseline.mean_anxiety) / baseline.anxiety_std, 2)

    return TrendIndicators(
        slope_7d=_daily_slope(last7, [e.mood_score for e in last7]),
        slope_14d=_daily_slope(last14, [e.mood_score for e in last14]),
        latest_z_score=latest_z,
        anxiety_slope_7d=_daily_slope(last7, [_anxiety(e) for e in last7]),
        anxiety_slope_14d=_daily_slope(last14, [_anxiety(e) for e in last14]),
        latest_anxiety_z_score=latest_anx_z,
    )


# ── Themes ────────────────────────────────────────────────────


def frequency_table(
    entries: Sequence[JournalEntry],
    field: str,
    top_n: int = TOP_N_THEMES,
    *,
    now: datetime | None = None,
    period_days: int | None = None,
) -> list[RankedItem]:
    """Rank the labels in ``field`` (``"triggers"``, ``"symptoms"``, ``"emotions"``).

    Labels are lower-cased and trimmed.  When ``period_days`` is given only
    entries in the trailing period before ``now`` are counted, and the
    percentage is relative to those entries.  Ties keep first-seen order.
    """
    if period_days is not None:
        ref = _utc(now) if now is not None else datetime.now(timezone.utc)
        entries = [e for e in entries if _utc(e.created_at) >= ref - timedelta(days=period_days)]
    total = len(entries)
    if total == 0:
        return []

    counts: Counter[str] = Counter()
    for entry in entries:
        for raw in getattr(entry, field):
            label = raw.strip().lower()
            if label:
                counts[label] += 1

    return [
        RankedItem(label=label, count=count, percentage=round(100.0 * count / total, 1))
        for label, count in counts.most_common(top_n)
    ]


def classify_sentiment_trend(slope_7d: float | None, n_points: int) -> SentimentTrend:
    """Bucket a per-day mood slope with a ±0.05 dead band."""
    if slope_7d is None or n_points < MIN_SENTIMENT_POINTS:
        return SentimentTrend.INSUFFICIENT_DATA
    if slope_7d > SENTIMENT_EPSILON:
        return SentimentTrend.IMPROVING
    if slope_7d < -SENTIMENT_EPSILON:
        return SentimentTrend.DECLINING
    return SentimentTrend.STABLE


def _mentions(entry: JournalEntry, terms: Sequence[str]) -> bool:
    tags = {t.strip().lower() for t in (*entry.symptoms, *entry.emotions, *entry.triggers)}
    if tags.intersection(terms):
        return True
    content = entry.content.lower()
    return any(term in content for term in terms)


def _hopeless(entry: JournalEntry) -> bool:
    if _mentions(entry, HOPELESSNESS_TERMS):
        return True
    indicators = entry.phq9_indicators or {}
    return indicators.get("worthlessness", 0) >= 2


def compute_themes(
    ordered: Sequence[JournalEntry],
    now: datetime,
    period_days: int | None = THEME_PERIOD_DAYS,
) -> RecurrentThemes:
    """Trigger and symptom tables cover the trailing ``period_days``; the
    rumination and hopelessness rates cover the whole history.
    """
    total = len(ordered)
    if total == 0:
        return RecurrentThemes()

    last7 = _window(ordered, now, 7)
    slope_7d = _daily_slope(last7, [e.mood_score for e in last7])
    rumination = sum(1 for e in ordered if _mentions(e, RUMINATION_TERMS))
    hopelessness = sum(1 for e in ordered if _hopeless(e))

    return RecurrentThemes(
        triggers=frequency_table(ordered, "triggers", now=now, period_days=period_days),
        symptom_clusters=frequency_table(ordered, "symptoms", now=now, period_days=period_days),
        sentiment_trend=classify_sentiment_trend(slope_7d, len(last7)),
        sentiment_slope=slope_7d,
        rumination_count=rumination,
        rumination_rate=round(rumination / total, 2),
        hopelessness_count=hopelessness,
        hopelessness_rate=round(hopelessness / total, 2),
    )


# ── Evidence ──────────────────────────────────────────────────


def truncate_excerpt(content: str, max_len: int = EXCERPT_MAX_LEN) -> str:
    """Cut ``content`` to ``max_len`` chars, preferring a word boundary."""
    if not content:
        return ""
    if len(content) <= max_len:
        return content
    cut = content[:max_len]
    last_space = cut.rfind(" ")
    if last_space > max_len * 0.6:
        cut = cut[:last_space]
    return cut + "..."


def _snippet(entry: JournalEntry, signal: str) -> EvidenceSnippet:
    return EvidenceSnippet(
        excerpt=truncate_excerpt(entry.content),
        date=entry.created_at,
        signal=signal,
        mood_score=entry.mood_score,
    )


def select_evidence(entries: Sequence[JournalEntry], limit: int = EVIDENCE_LIMIT) -> list[EvidenceSnippet]:
    """Pick up to ``limit`` representative entries.

    Order: strongest ``|mood_z_score|``, then the most recent crisis entry
    (or, failing that, the lowest mood ≤ 4 among the latest ten), then the
    most recent entry if it was not already chosen.
    """
    ordered = _sorted_oldest_first(entries)
    if not ordered:
        return []

    chosen: list[JournalEntry] = []
    snippets: list[EvidenceSnippet] = []
    newest_first = ordered[::-1]

    with_z = [e for e in ordered if e.mood_z_score is not None]
    if with_z:
        extreme = max(with_z, key=lambda e: abs(e.mood_z_score))
        chosen.append(extreme)
        snippets.append(
            _snippet(extreme, f"Mood z-score: {round(extreme.mood_z_score, 2)} (strongest deviation)")
        )

    crisis = next((e for e in newest_first if e.crisis_detected), None)
    if crisis is not None:
        chosen.append(crisis)
        snippets.append(_snippet(crisis, "Crisis language detected"))
    else:
        lowest = min(newest_first[:RECENT_WINDOW], key=lambda e: e.mood_score)
        if lowest.mood_score <= LOW_MOOD_THRESHOLD:
            chosen.append(lowest)
            snippets.append(_snippet(lowest, f"Low mood entry ({lowest.mood_score:g}/10)"))

    latest = newest_first[0]
    if all(c.id != latest.id for c in chosen):
        snippets.append(_snippet(latest, "Most recent entry"))

    return snippets[:limit]


# ── Profile ───────────────────────────────────────────────────


def compute_longitudinal_profile(
    entries: Sequence[JournalEntry],
    now: datetime | None = None,
    theme_period_days: int | None = THEME_PERIOD_DAYS,
) -> LongitudinalProfile:
    """Compute the full profile; ``entries`` may be in any order.

    ``theme_period_days=None`` counts triggers and symptoms over all history.
    """
    now = _utc(now) if now is not None else datetime.now(timezone.utc)
    ordered = _sorted_oldest_first(entries)

    baseline = compute_baseline_metrics(ordered)
    return LongitudinalProfile(
        baseline=baseline,
        trends=compute_trends(ordered, baseline, now),
        themes=compute_themes(ordered, now, theme_period_days),
        evidence=select_evidence(ordered),
        generated_at=now,
        data_range=DataRange(
            earliest=ordered[0].created_at if ordered else None,
            latest=ordered[-1].created_at if ordered else None,
        ),
    )
