"""Normalization Store: per-domain min/max scaling.

The same :class:`NormalizationMetadata` computed from a training batch is
persisted next to the model weights and applied unchanged at inference,
so a model never sees features scaled differently from how it was trained.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from pydantic import ValidationError

from cpb_ai.exceptions import ArtifactCorruptedError, NormalizationMetadataNotFoundError
from cpb_ai.schemas import NormalizationMetadata
from cpb_ai.settings import NormalizationSettings
from cpb_ai.types import Domain

if TYPE_CHECKING:
    from pathlib import Path

    from cpb_ai.storage import ArtifactStorage

logger = logging.getLogger(__name__)

NORMALIZATION_FILE = "normalization.json"


class NormalizationStore:
    """Fit, apply, persist and load min/max normalization metadata."""

    def __init__(
        self,
        storage: ArtifactStorage,
        settings: NormalizationSettings | None = None,
    ) -> None:
        self._storage = storage
        self._settings = settings or NormalizationSettings()

    @property
    def epsilon(self) -> float:
        return self._settings.epsilon

    # ------------------------------------------------------------------
    # Math
    # ------------------------------------------------------------------

    @staticmethod
    def fit(
        vectors: np.ndarray,
        feature_names: list[str] | None = None,
    ) -> NormalizationMetadata:
        """Compute per-feature min and max over a batch of vectors."""
        matrix = np.asarray(vectors, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[0] == 0:
            raise ValueError(f"Expected a non-empty 2-D batch, got shape {matrix.shape}")
        return NormalizationMetadata(
            min=matrix.min(axis=0).tolist(),
            max=matrix.max(axis=0).tolist(),
            feature_names=list(feature_names or []),
        )

    def apply(
        self,
        vectors: np.ndarray,
        metadata: NormalizationMetadata,
        *,
        clip: bool = False,
    ) -> np.ndarray:
        """Scale *vectors* as ``(x - min) / (max - min + eps)``.

        Accepts one vector or a batch.  With ``clip=True`` the output is
        clamped to ``[0, 1]``.
        """
        values = np.asarray(vectors, dtype=np.float32)
        if values.shape[-1] != metadata.size:
            raise ValueError(
                f"Vector has {values.shape[-1]} features, metadata expects {metadata.size}"
            )
        lo = np.asarray(metadata.min, dtype=np.float32)
        hi = np.asarray(metadata.max, dtype=np.float32)
        scaled = (values - lo) / (hi - lo + np.float32(self.epsilon))
        if clip:
            scaled = np.clip(scaled, 0.0, 1.0)
        return scaled.astype(np.float32)

    def apply_for_inference(
        self,
        vectors: np.ndarray,
        metadata: NormalizationMetadata,
    ) -> np.ndarray:
        return self.apply(vectors, metadata, clip=self._settings.clip_at_inference)

    def inverse(self, normalized: np.ndarray, metadata: NormalizationMetadata) -> np.ndarray:
        """Map scaled values back to the original feature space."""
        values = np.asarray(normalized, dtype=np.float64)
        lo = np.asarray(metadata.min, dtype=np.float64)
        hi = np.asarray(metadata.max, dtype=np.float64)
        return values * (hi - lo + self.epsilon) + lo

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @staticmethod
    def write(metadata: NormalizationMetadata, directory: Path) -> Path:
        """Write *metadata* into an artifact (or staging) directory."""
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / NORMALIZATION_FILE
        path.write_text(metadata.model_dump_json(indent=2), encoding="utf-8")
        return path

    @staticmethod
    def read(domain: Domain | str, directory: Path) -> NormalizationMetadata:
        path = directory / NORMALIZATION_FILE
        if not path.is_file():
            raise NormalizationMetadataNotFoundError(
                f"Model found but normalization metadata is missing for {Domain(domain)}",
                details={"domain": str(domain)},
            )
        try:
            return NormalizationMetadata.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ArtifactCorruptedError(f"Invalid {NORMALIZATION_FILE} at {directory}: {e}") from e

    async def persist(
        self,
        domain: Domain | str,
        metadata: NormalizationMetadata,
        *,
        staging: Path | None = None,
    ) -> None:
        """Persist *metadata* for *domain*.

        When *staging* is given the file joins an open artifact transaction
        and is committed together with the weights; otherwise a transaction
        of its own is opened.
        """
        if staging is not None:
            self.write(metadata, staging)
            return
        async with self._storage.transaction(domain) as directory:
            self.write(metadata, directory)
        logger.debug("Persisted normalization metadata for %s", Domain(domain))

    async def load(self, domain: Domain | str) -> NormalizationMetadata:
        """Load the metadata for *domain*.

        Raises:
            NormalizationMetadataNotFoundError: nothing stored for the domain.
        """
        async with self._storage.reading(domain) as directory:
            return self.read(domain, directory)
