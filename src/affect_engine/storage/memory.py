"""In-memory stores with per-subject locks.

Suitable for tests, notebooks and single-process hosts.  Locks are created
lazily per subject so unrelated subjects never contend.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import AsyncContextManager

import structlog

from affect_engine.calibration.models import CalibrationModel
from affect_engine.models import BaselineStats, MetricName
from affect_engine.storage.base import BaselineStore, BaselineUpdate, ModelStore

logger = structlog.get_logger(__name__)


class InMemoryBaselineStore(BaselineStore):
    """Baselines keyed by ``(subject_id, metric)``."""

    def __init__(self) -> None:
        self._data: dict[tuple[str, MetricName], BaselineStats] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, subject_id: str, metric: MetricName) -> BaselineStats:
        return self._data.get((subject_id, metric), BaselineStats())

    async def update(self, subject_id: str, metric: MetricName, fn: BaselineUpdate) -> BaselineStats:
        async with self._locks[subject_id]:
            current = self._data.get((subject_id, metric), BaselineStats())
            updated = fn(current)
            self._data[(subject_id, metric)] = updated
            return updated

    async def put(self, subject_id: str, metric: MetricName, stats: BaselineStats) -> None:
        self._data[(subject_id, metric)] = stats

    def subject_lock(self, subject_id: str) -> AsyncContextManager[None]:
        return self._locks[subject_id]

    async def reset(self, subject_id: str, metric: MetricName | None = None) -> None:
        async with self._locks[subject_id]:
            keys = [k for k in self._data if k[0] == subject_id and (metric is None or k[1] == metric)]
            for key in keys:
                del self._data[key]
        logger.info("storage.baseline_reset", subject_id=subject_id, metric=metric, removed=len(keys))


class InMemoryModelStore(ModelStore):
    """One calibration model per subject; replaced wholesale."""

    def __init__(self) -> None:
        self._models: dict[str, CalibrationModel] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, subject_id: str) -> CalibrationModel | None:
        return self._models.get(subject_id)

    async def replace(self, subject_id: str, model: CalibrationModel) -> None:
        # Single assignment: readers see the old model or the new one.
        self._models[subject_id] = model

    def training_lock(self, subject_id: str) -> AsyncContextManager[None]:
        return self._locks[subject_id]
