"""Exception hierarchy for the CPB AI engine.

All exceptions inherit from CpbAIError so callers can catch
engine-level errors with a single except clause.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Generator


class CpbAIError(Exception):
    """Base exception for all CPB AI errors."""

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# Dataset Errors
# =============================================================================


class DatasetError(CpbAIError):
    """Base for errors raised while reading an uploaded dataset."""


class DatasetFormatError(DatasetError):
    """Raised when a dataset shape is unrecognized or matches no domain."""

    def __init__(
        self,
        message: str = "",
        *,
        keys: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.keys = keys or []
        merged = {"keys": self.keys, **(details or {})}
        super().__init__(message, details=merged)


class InsufficientDataError(DatasetError):
    """Raised before any tensor allocation when too few records are supplied."""

    def __init__(
        self,
        message: str = "",
        *,
        required: int = 0,
        received: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.required = required
        self.received = received
        merged = {"required": required, "received": received, **(details or {})}
        super().__init__(message, details=merged)


# =============================================================================
# Model Errors
# =============================================================================


class ModelError(CpbAIError):
    """Base for model-related errors."""


class ModelUnavailableError(ModelError):
    """No usable model for a domain. Recovered locally by heuristic fallback."""


class ModelNotFoundError(ModelUnavailableError):
    """Raised when no artifact was ever saved for a domain."""


class NormalizationMetadataNotFoundError(ModelUnavailableError):
    """Raised when an artifact exists but its min/max metadata does not."""


class ArtifactIncompatibleError(ModelUnavailableError):
    """Raised when a saved artifact does not match the current feature schema."""


class ModelTrainingError(ModelError):
    """Raised when a training run fails."""


class TrainingInProgressError(ModelError):
    """Raised when a domain is already training and the policy is ``reject``."""


# =============================================================================
# Serialization Errors
# =============================================================================


class SerializationError(CpbAIError):
    """Base for artifact serialization/deserialization errors."""


class ArtifactCorruptedError(SerializationError):
    """Raised when an artifact file is missing or unreadable."""


# =============================================================================
# Config Errors
# =============================================================================


class ConfigError(CpbAIError):
    """Base for configuration errors."""


class UnknownDomainError(ConfigError):
    """Raised when a domain id has no registered schema."""


# =============================================================================
# Error Context Manager
# =============================================================================


@contextmanager
def error_context(**context: Any) -> Generator[None, None, None]:
    """Tag engine errors raised in the block with *context*.

    ``with error_context(domain="transfusion", operation="train")`` makes
    those two keys show up in the API error body's ``details``.
    """
    try:
        yield
    except CpbAIError as exc:
        exc.details.update(context)
        raise
