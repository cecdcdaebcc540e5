"""Store contracts the engine needs from its persistence collaborator.

Implementations must make ``BaselineStore.update`` an atomic
read-modify-write per ``(subject, metric)`` and ``ModelStore.replace`` a
wholesale swap, so a reader never observes a half-written model.
``BaselineStore.subject_lock`` is the same per-subject lock ``update`` takes;
hold it around ``get``/``put`` when several metrics must move together.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Callable

from affect_engine.calibration.models import CalibrationModel
from affect_engine.models import BaselineStats, MetricName

BaselineUpdate = Callable[[BaselineStats], BaselineStats]


class BaselineStore(ABC):
    """Keyed storage for :class:`BaselineStats`."""

    @abstractmethod
    async def get(self, subject_id: str, metric: MetricName) -> BaselineStats:
        """Return the stored stats, or the seed ``BaselineStats()`` if none."""

    @abstractmethod
    async def update(self, subject_id: str, metric: MetricName, fn: BaselineUpdate) -> BaselineStats:
        """Apply ``fn`` to the current stats atomically and return the result."""

    @abstractmethod
    async def put(self, subject_id: str, metric: MetricName, stats: BaselineStats) -> None:
        """Overwrite the stored stats; the caller holds ``subject_lock``."""

    @abstractmethod
    def subject_lock(self, subject_id: str) -> AsyncContextManager[None]:
        """Context manager serialising read-modify-write for ``subject_id``.

        Not re-entrant: do not call ``update`` or ``reset`` while holding it.
        """

    @abstractmethod
    async def reset(self, subject_id: str, metric: MetricName | None = None) -> None:
        """Forget one metric (or every metric) for a subject."""


class ModelStore(ABC):
    """Keyed storage for one :class:`CalibrationModel` per subject."""

    @abstractmethod
    async def get(self, subject_id: str) -> CalibrationModel | None: ...

    @abstractmethod
    async def replace(self, subject_id: str, model: CalibrationModel) -> None: ...

    @abstractmethod
    def training_lock(self, subject_id: str) -> AsyncContextManager[None]:
        """Context manager serialising training runs for ``subject_id``."""
