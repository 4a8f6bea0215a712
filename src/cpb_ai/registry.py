"""Model Registry: load, create, save and dispose per-domain models.

A domain model moves through::

    UNLOADED → LOADING → {LOADED | FRESH} → IN_USE → DISPOSED

:meth:`ModelRegistry.checkout` is the training entry point: it holds the
domain's registry lock, so at most one instance per domain is ``IN_USE``,
and disposes the instance on every exit path.  Inference uses
:meth:`ModelRegistry.snapshot` instead, which reads the last committed
artifact and only waits for a commit in progress, never for a whole run.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from cpb_ai.exceptions import ArtifactIncompatibleError
from cpb_ai.features.schema import DOMAIN_SCHEMAS, get_schema
from cpb_ai.models import build_network
from cpb_ai.resources import BufferScope
from cpb_ai.schemas import ArtifactMetadata
from cpb_ai.serialization import ModelSerializer
from cpb_ai.types import ARTIFACT_SCHEMA_VERSION, Domain, ModelState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from pathlib import Path

    import torch
    from torch import nn

    from cpb_ai.features.schema import DomainSchema
    from cpb_ai.storage import ArtifactStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ModelHandle:
    """A live domain model and the description it is saved with."""

    domain: Domain
    network: nn.Sequential
    metadata: ArtifactMetadata
    state: ModelState = ModelState.UNLOADED
    scope: BufferScope = field(default_factory=BufferScope)
    from_artifact: bool = False

    @property
    def warm_start(self) -> bool:
        """True when the weights came from a previously saved artifact."""
        return self.from_artifact


class ModelRegistry:
    """Single access point to model artifacts in :class:`ArtifactStorage`."""

    def __init__(
        self,
        storage: ArtifactStorage,
        schemas: dict[Domain, DomainSchema] | None = None,
    ) -> None:
        self._storage = storage
        self._schemas = schemas or DOMAIN_SCHEMAS
        self._serializer = ModelSerializer()
        self._locks: dict[Domain, asyncio.Lock] = {}
        self._in_use: set[Domain] = set()

    def _schema(self, domain: Domain | str) -> DomainSchema:
        schema = get_schema(domain)
        return self._schemas.get(schema.domain, schema)

    def _lock(self, domain: Domain) -> asyncio.Lock:
        if domain not in self._locks:
            self._locks[domain] = asyncio.Lock()
        return self._locks[domain]

    def in_use(self, domain: Domain | str) -> bool:
        return Domain(domain) in self._in_use

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, domain: Domain | str) -> ModelHandle:
        """Build a fresh, randomly initialized model for *domain*."""
        schema = self._schema(domain)
        architecture = schema.architecture()
        network = build_network(schema.input_size, architecture)
        metadata = ArtifactMetadata(
            domain=schema.domain,
            task=schema.task,
            feature_names=schema.feature_names,
            architecture=architecture,
        )
        handle = ModelHandle(
            domain=schema.domain,
            network=network,
            metadata=metadata,
            scope=BufferScope(f"model:{schema.domain}"),
        )
        self._track(handle)
        handle.state = ModelState.FRESH
        return handle

    async def load(self, domain: Domain | str) -> ModelHandle:
        """Load the saved model for *domain*.

        Raises:
            ModelNotFoundError: nothing saved for the domain.
            ArtifactIncompatibleError: saved artifact does not fit the
                current feature schema or architecture.
            ArtifactCorruptedError: files unreadable.
        """
        schema = self._schema(domain)
        async with self._storage.reading(schema.domain) as directory:
            state_dict, metadata = await self._serializer.load(directory)
        return self._build(schema, state_dict, metadata)

    def _build(
        self,
        schema: DomainSchema,
        state_dict: dict[str, torch.Tensor],
        metadata: ArtifactMetadata,
    ) -> ModelHandle:
        self._check_compatible(schema, metadata)
        network = build_network(schema.input_size, metadata.architecture)
        try:
            network.load_state_dict(state_dict)
        except RuntimeError as e:
            raise ArtifactIncompatibleError(
                f"Saved weights do not fit the {schema.domain} architecture",
                details={"domain": schema.domain.value, "reason": str(e)},
            ) from e
        finally:
            state_dict.clear()

        handle = ModelHandle(
            domain=schema.domain,
            network=network,
            metadata=metadata,
            scope=BufferScope(f"model:{schema.domain}"),
            from_artifact=True,
        )
        self._track(handle)
        handle.state = ModelState.LOADED
        logger.debug("Loaded %s model (%d records)", schema.domain, metadata.record_count)
        return handle

    async def load_or_create(self, domain: Domain | str) -> ModelHandle:
        """Load the saved model, or build a fresh one on any load failure.

        Never raises for a known domain.
        """
        schema = self._schema(domain)
        try:
            return await self.load(schema.domain)
        except Exception as e:
            logger.info(
                "No usable saved model for %s (%s), creating a fresh one",
                schema.domain,
                e,
            )
            return self.create(schema.domain)

    async def save(self, handle: ModelHandle, directory: Path) -> None:
        """Write the handle's weights and metadata into *directory*.

        *directory* is normally the staging directory of an open
        :meth:`ArtifactStorage.transaction`, which makes the write atomic.
        """
        if handle.state == ModelState.DISPOSED:
            raise RuntimeError(f"Cannot save a disposed {handle.domain} model")
        await self._serializer.save(handle.network.state_dict(), directory, handle.metadata)

    def dispose(self, handle: ModelHandle) -> None:
        """Release the handle's parameter buffers. Idempotent."""
        if handle.state == ModelState.DISPOSED:
            return
        handle.scope.release()
        for param in handle.network.parameters():
            param.grad = None
        if handle.state == ModelState.IN_USE:
            self._in_use.discard(handle.domain)
        handle.network = None  # type: ignore[assignment]
        handle.state = ModelState.DISPOSED

    @asynccontextmanager
    async def checkout(self, domain: Domain | str) -> AsyncIterator[ModelHandle]:
        """Hold the only trainable model for *domain* for the duration of the block.

        The saved model is warm-started when usable, otherwise a fresh one
        is built.
        """
        schema = self._schema(domain)
        async with self._lock(schema.domain):
            handle = await self.load_or_create(schema.domain)
            try:
                handle.state = ModelState.IN_USE
                self._in_use.add(schema.domain)
                yield handle
            finally:
                self.dispose(handle)

    @asynccontextmanager
    async def snapshot(
        self,
        domain: Domain | str,
        read_sidecar: Callable[[Path], T],
    ) -> AsyncIterator[tuple[ModelHandle, T]]:
        """Read-only copy of the last committed model, plus one sidecar file.

        *read_sidecar* runs on the same committed directory as the weights,
        so both come from one commit.  A training run in progress is not
        waited for; only a commit being swapped in is.

        Raises:
            ModelNotFoundError: nothing saved for the domain.
        """
        schema = self._schema(domain)
        async with self._storage.reading(schema.domain) as directory:
            state_dict, metadata = await self._serializer.load(directory)
            try:
                sidecar = read_sidecar(directory)
            except Exception:
                state_dict.clear()
                raise
        handle = self._build(schema, state_dict, metadata)
        try:
            yield handle, sidecar
        finally:
            self.dispose(handle)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _track(handle: ModelHandle) -> None:
        handle.state = ModelState.LOADING
        for param in handle.network.parameters():
            handle.scope.track(param)

    @staticmethod
    def _check_compatible(schema: DomainSchema, metadata: ArtifactMetadata) -> None:
        problems: list[str] = []
        if metadata.schema_version != ARTIFACT_SCHEMA_VERSION:
            problems.append(
                f"schema version {metadata.schema_version} != {ARTIFACT_SCHEMA_VERSION}"
            )
        if metadata.domain != schema.domain:
            problems.append(f"domain {metadata.domain} != {schema.domain}")
        if metadata.feature_names != schema.feature_names:
            problems.append(
                f"features {metadata.feature_names} != {schema.feature_names}"
            )
        if metadata.task != schema.task:
            problems.append(f"task {metadata.task} != {schema.task}")
        if problems:
            raise ArtifactIncompatibleError(
                f"Saved {schema.domain} artifact is incompatible: " + "; ".join(problems),
                details={"domain": schema.domain.value, "problems": problems},
            )
