"""Filesystem storage for per-domain artifacts.

Each domain owns one directory under the storage root::

    <root>/transfusion/model.safetensors
    <root>/transfusion/metadata.json
    <root>/transfusion/normalization.json

Writes happen inside :meth:`ArtifactStorage.transaction`: files are written
to a staging directory that starts as a copy of the current content and is
swapped into place only when the block exits cleanly.  A per-domain lock
serializes transactions and reads, so readers never see half an artifact.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from cpb_ai.types import Domain

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


class ArtifactStorage:
    """Per-domain artifact directories with atomic multi-file commits."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base = Path(base_dir)
        self._base.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def base_dir(self) -> Path:
        return self._base

    def domain_dir(self, domain: Domain | str) -> Path:
        key = Domain(domain).value
        target = (self._base / key).resolve()
        if not target.is_relative_to(self._base.resolve()):
            msg = f"Path traversal detected: {key}"
            raise ValueError(msg)
        return target

    def lock(self, domain: Domain | str) -> asyncio.Lock:
        key = Domain(domain).value
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self, domain: Domain | str) -> AsyncIterator[Path]:
        """Yield a staging directory committed atomically on clean exit."""
        async with self.lock(domain):
            final = self.domain_dir(domain)
            staging = self._base / f".{final.name}.staging-{uuid.uuid4().hex[:8]}"
            if final.is_dir():
                shutil.copytree(final, staging)
            else:
                staging.mkdir(parents=True)

            try:
                yield staging
            except BaseException:
                shutil.rmtree(staging, ignore_errors=True)
                raise

            self._swap(final, staging)
            logger.debug("Committed artifact directory %s", final)

    @asynccontextmanager
    async def reading(self, domain: Domain | str) -> AsyncIterator[Path]:
        """Yield the domain directory while holding the domain lock."""
        async with self.lock(domain):
            yield self.domain_dir(domain)

    @staticmethod
    def _swap(final: Path, staging: Path) -> None:
        backup: Path | None = None
        if final.exists():
            backup = final.with_name(f".{final.name}.old-{uuid.uuid4().hex[:8]}")
            final.rename(backup)
        try:
            staging.rename(final)
        except OSError:
            if backup is not None:
                backup.rename(final)
            shutil.rmtree(staging, ignore_errors=True)
            raise
        if backup is not None:
            shutil.rmtree(backup, ignore_errors=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_file(self, domain: Domain | str, name: str) -> bool:
        return (self.domain_dir(domain) / name).is_file()

    def list_domains(self) -> list[Domain]:
        """Domains that have a committed artifact directory."""
        found: list[Domain] = []
        for domain in Domain:
            if self.domain_dir(domain).is_dir():
                found.append(domain)
        return found

    async def delete(self, domain: Domain | str) -> None:
        """Remove everything stored for *domain*."""
        async with self.lock(domain):
            target = self.domain_dir(domain)
            if target.is_dir():
                shutil.rmtree(target)
                logger.info("Deleted artifacts for %s", Domain(domain))
