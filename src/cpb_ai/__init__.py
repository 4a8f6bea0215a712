"""CPB AI engine: local continual learning and inference for CPB risk predictions."""

from __future__ import annotations

from cpb_ai.exceptions import (
    CpbAIError,
    DatasetFormatError,
    InsufficientDataError,
    ModelUnavailableError,
    TrainingInProgressError,
    UnknownDomainError,
)
from cpb_ai.schemas import PredictionResult, TrainingRun, TrendReport
from cpb_ai.types import Domain, Provenance, Severity

__version__ = "0.3.0"

__all__ = [
    "CpbAIError",
    "DatasetFormatError",
    "Domain",
    "InsufficientDataError",
    "ModelUnavailableError",
    "PredictionResult",
    "Provenance",
    "Severity",
    "TrainingInProgressError",
    "TrainingRun",
    "TrendReport",
    "UnknownDomainError",
    "__version__",
]
