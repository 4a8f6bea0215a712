"""Engine assembly: wires storage, registry, training, inference and history."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cpb_ai.db.engine import create_async_engine, create_session_factory, create_tables
from cpb_ai.features.schema import DOMAIN_SCHEMAS
from cpb_ai.history.service import TrainingHistoryLog
from cpb_ai.inference.service import InferenceService
from cpb_ai.normalization import NORMALIZATION_FILE, NormalizationStore
from cpb_ai.registry import ModelRegistry
from cpb_ai.resources import memory
from cpb_ai.serialization import METADATA_FILE, WEIGHTS_FILE
from cpb_ai.settings import EngineSettings
from cpb_ai.storage import ArtifactStorage
from cpb_ai.training.service import TrainingService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """Every long-lived component of the CPB AI engine."""

    settings: EngineSettings
    db_engine: AsyncEngine
    storage: ArtifactStorage
    normalization: NormalizationStore
    registry: ModelRegistry
    history: TrainingHistoryLog
    training: TrainingService
    inference: InferenceService

    def status(self) -> dict[str, Any]:
        """Artifact availability per domain and live buffer counts."""
        domains: dict[str, Any] = {}
        for domain in DOMAIN_SCHEMAS:
            has_model = self.storage.has_file(domain, WEIGHTS_FILE) and self.storage.has_file(
                domain, METADATA_FILE
            )
            has_norm = self.storage.has_file(domain, NORMALIZATION_FILE)
            domains[domain.value] = {
                "artifact": has_model,
                "normalization": has_norm,
                "usable": has_model and has_norm,
                "training": self.training.is_training(domain),
            }
        mem = memory()
        return {
            "domains": domains,
            "live_buffers": mem.num_buffers,
            "live_bytes": mem.num_bytes,
        }

    async def close(self) -> None:
        await self.db_engine.dispose()
        logger.debug("Engine closed")


async def build_engine(settings: EngineSettings | None = None) -> Engine:
    """Create all components and make sure the history table exists."""
    settings = settings or EngineSettings()

    db_engine = create_async_engine(settings.database_url)
    await create_tables(db_engine)
    session_factory = create_session_factory(db_engine)

    storage = ArtifactStorage(settings.artifact_dir)
    normalization = NormalizationStore(storage, settings.normalization)
    registry = ModelRegistry(storage)
    history = TrainingHistoryLog(session_factory, max_entries=settings.history.max_entries)
    training = TrainingService(
        registry=registry,
        normalization=normalization,
        storage=storage,
        history=history,
        settings=settings.training,
    )
    inference = InferenceService(registry, normalization)

    logger.info("Engine ready (artifacts=%s)", storage.base_dir)
    return Engine(
        settings=settings,
        db_engine=db_engine,
        storage=storage,
        normalization=normalization,
        registry=registry,
        history=history,
        training=training,
        inference=inference,
    )


@asynccontextmanager
async def open_engine(settings: EngineSettings | None = None) -> AsyncIterator[Engine]:
    """Build an :class:`Engine` and close it on exit."""
    engine = await build_engine(settings)
    try:
        yield engine
    finally:
        await engine.close()
