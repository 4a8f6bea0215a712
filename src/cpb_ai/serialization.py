"""Model serialization with safetensors.

Each saved domain model is a directory with:
    model.safetensors
    metadata.json
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import ValidationError

from cpb_ai.exceptions import ArtifactCorruptedError, ModelNotFoundError, SerializationError
from cpb_ai.schemas import ArtifactMetadata

if TYPE_CHECKING:
    from pathlib import Path

    import torch

WEIGHTS_FILE = "model.safetensors"
METADATA_FILE = "metadata.json"


class ModelSerializer:
    """Save and load model weights + metadata."""

    @staticmethod
    async def save(
        state_dict: dict[str, torch.Tensor],
        path: Path,
        metadata: ArtifactMetadata,
    ) -> Path:
        """Write weights and metadata into *path* (created if missing)."""
        from safetensors.torch import save_file

        path.mkdir(parents=True, exist_ok=True)
        tensors = {name: t.detach().contiguous().cpu() for name, t in state_dict.items()}
        try:
            save_file(tensors, str(path / WEIGHTS_FILE))
        except (OSError, ValueError) as e:
            raise SerializationError(f"Failed to write weights to {path}: {e}") from e

        (path / METADATA_FILE).write_text(
            metadata.model_dump_json(indent=2),
            encoding="utf-8",
        )
        return path

    @staticmethod
    async def load(path: Path) -> tuple[dict[str, torch.Tensor], ArtifactMetadata]:
        """Load weights and metadata from *path*.

        Raises:
            ModelNotFoundError: nothing was ever saved at *path*.
            ArtifactCorruptedError: files are missing or unreadable.
        """
        from safetensors.torch import load_file

        metadata_path = path / METADATA_FILE
        weights_path = path / WEIGHTS_FILE
        if not metadata_path.exists() and not weights_path.exists():
            raise ModelNotFoundError(f"No model saved at {path}")
        if not metadata_path.exists():
            raise ArtifactCorruptedError(f"Missing {METADATA_FILE} at {path}")
        if not weights_path.exists():
            raise ArtifactCorruptedError(f"Missing model file: {weights_path}")

        try:
            metadata = ArtifactMetadata.model_validate_json(
                metadata_path.read_text(encoding="utf-8")
            )
        except ValidationError as e:
            raise ArtifactCorruptedError(f"Invalid {METADATA_FILE} at {path}: {e}") from e

        try:
            state_dict = load_file(str(weights_path))
        except Exception as e:
            raise ArtifactCorruptedError(f"Unreadable weights at {weights_path}: {e}") from e
        return state_dict, metadata
