"""Training service: per-domain pipelines behind a concurrency guard."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import TYPE_CHECKING, Any

from cpb_ai.datasets.reports import CLINICAL_BASELINE, records_from_reports
from cpb_ai.datasets.router import DatasetRouter
from cpb_ai.exceptions import TrainingInProgressError
from cpb_ai.features.schema import DOMAIN_SCHEMAS, get_schema
from cpb_ai.settings import TrainingSettings
from cpb_ai.training.pipeline import TrainingPipeline
from cpb_ai.types import Domain, TrainingPolicy

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cpb_ai.history.service import TrainingHistoryLog
    from cpb_ai.normalization import NormalizationStore
    from cpb_ai.registry import ModelRegistry
    from cpb_ai.schemas import TrainingRun
    from cpb_ai.storage import ArtifactStorage
    from cpb_ai.training.pipeline import ProgressCallback

logger = logging.getLogger(__name__)


class TrainingService:
    """Entry point for every training request.

    Holds one :class:`TrainingPipeline` per domain and a lock per domain.
    A request for a domain that is already training is rejected with
    :exc:`TrainingInProgressError` under the ``reject`` policy, or waits
    for the running one under ``queue``.
    """

    def __init__(
        self,
        *,
        registry: ModelRegistry,
        normalization: NormalizationStore,
        storage: ArtifactStorage,
        history: TrainingHistoryLog,
        settings: TrainingSettings | None = None,
        router: DatasetRouter | None = None,
    ) -> None:
        self._settings = settings or TrainingSettings()
        self._router = router or DatasetRouter()
        self._pipelines: dict[Domain, TrainingPipeline] = {
            domain: TrainingPipeline(
                schema,
                registry=registry,
                normalization=normalization,
                storage=storage,
                history=history,
                settings=self._settings,
            )
            for domain, schema in DOMAIN_SCHEMAS.items()
        }
        self._locks: dict[Domain, asyncio.Lock] = {d: asyncio.Lock() for d in self._pipelines}

    @property
    def policy(self) -> TrainingPolicy:
        return self._settings.concurrency_policy

    def pipeline(self, domain: Domain | str) -> TrainingPipeline:
        return self._pipelines[get_schema(domain).domain]

    def is_training(self, domain: Domain | str) -> bool:
        return self._locks[get_schema(domain).domain].locked()

    def active_domains(self) -> list[Domain]:
        return [d for d, lock in self._locks.items() if lock.locked()]

    async def train(
        self,
        domain: Domain | str,
        records: Sequence[Any],
        progress: ProgressCallback | None = None,
    ) -> TrainingRun:
        """Train *domain* on *records*, honoring the concurrency policy."""
        key = get_schema(domain).domain
        lock = self._locks[key]
        if lock.locked():
            if self.policy == TrainingPolicy.REJECT:
                raise TrainingInProgressError(
                    f"A training run for {key} is already in progress",
                    details={"domain": key.value},
                )
            logger.info("Training for %s is busy, queueing request", key)

        async with lock:
            return await self._pipelines[key].train(records, progress)

    async def train_dataset(
        self,
        payload: Any,
        progress: ProgressCallback | None = None,
    ) -> TrainingRun:
        """Route an uploaded dataset to its domain and train on it."""
        routed = self._router.route(payload)
        return await self.train(routed.domain, routed.records, progress)

    async def bootstrap_baseline(self, progress: ProgressCallback | None = None) -> TrainingRun:
        """Train the transfusion model on the built-in clinical baseline."""
        return await self.train(Domain.TRANSFUSION, copy.deepcopy(CLINICAL_BASELINE), progress)

    async def train_from_reports(
        self,
        reports: Sequence[dict[str, Any]],
        progress: ProgressCallback | None = None,
    ) -> TrainingRun:
        """Train the transfusion model on records derived from CPB reports."""
        records = records_from_reports(list(reports))
        return await self.train(Domain.TRANSFUSION, records, progress)
