"""Training pipeline, configuration and concurrency guard."""

from __future__ import annotations

from cpb_ai.training.callbacks import (
    CallbackRunner,
    MetricsRecorder,
    TrainingCallback,
    TrainingContext,
)
from cpb_ai.training.config import (
    EarlyStoppingConfig,
    HyperParameters,
    ValidationSplitConfig,
    select_hyperparameters,
)
from cpb_ai.training.data_splitting import SplitIndices, ValidationSplitter
from cpb_ai.training.early_stopping import EarlyStopping
from cpb_ai.training.metrics import classification_metrics, confusion_counts
from cpb_ai.training.pipeline import TrainingPipeline
from cpb_ai.training.service import TrainingService

__all__ = [
    "CallbackRunner",
    "EarlyStopping",
    "EarlyStoppingConfig",
    "HyperParameters",
    "MetricsRecorder",
    "SplitIndices",
    "TrainingCallback",
    "TrainingContext",
    "TrainingPipeline",
    "TrainingService",
    "ValidationSplitConfig",
    "ValidationSplitter",
    "classification_metrics",
    "confusion_counts",
    "select_hyperparameters",
]
