"""Pydantic schemas for artifacts, normalization metadata, runs and predictions."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cpb_ai.types import ARTIFACT_SCHEMA_VERSION, Domain, Provenance, Severity, TaskKind


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Normalization
# =============================================================================


class NormalizationMetadata(BaseModel):
    """Per-feature min/max vectors aligned with the artifact's feature order."""

    model_config = ConfigDict(frozen=True)

    min: list[float]
    max: list[float]
    feature_names: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_alignment(self) -> NormalizationMetadata:
        if len(self.min) != len(self.max):
            raise ValueError(
                f"min/max length mismatch: {len(self.min)} != {len(self.max)}"
            )
        if self.feature_names and len(self.feature_names) != len(self.min):
            raise ValueError("feature_names must align with min/max vectors")
        return self

    @property
    def size(self) -> int:
        return len(self.min)


# =============================================================================
# Model artifact description
# =============================================================================


class LayerSpec(BaseModel):
    """One dense layer of a domain network."""

    units: int = Field(ge=1)
    activation: Literal["relu", "sigmoid", "linear"] = "linear"


class ArtifactMetadata(BaseModel):
    """Describes the model stored for one domain."""

    schema_version: int = ARTIFACT_SCHEMA_VERSION
    domain: Domain
    task: TaskKind
    feature_names: list[str]
    architecture: list[LayerSpec]
    created_at: datetime = Field(default_factory=_utcnow)
    record_count: int = 0

    @property
    def input_size(self) -> int:
        return len(self.feature_names)


# =============================================================================
# Training runs
# =============================================================================


class ClassificationMetrics(BaseModel):
    """Confusion-matrix counts and derived scores."""

    model_config = ConfigDict(frozen=True)

    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    true_negatives: int = 0
    precision: float = 0.0
    recall: float = 0.0
    f1: float = 0.0


class TrainingRun(BaseModel):
    """One completed training attempt. Immutable once appended to the log."""

    model_config = ConfigDict(frozen=True)

    domain: Domain
    timestamp: datetime = Field(default_factory=_utcnow)
    loss: float
    accuracy: float | None = None
    val_loss: float | None = None
    val_accuracy: float | None = None
    epochs_run: int = Field(ge=0)
    epoch_budget: int = Field(ge=1)
    batch_size: int = Field(ge=1)
    early_stopped: bool = False
    precision: float | None = None
    recall: float | None = None
    f1: float | None = None
    mean_absolute_error: float | None = None
    record_count: int = Field(ge=0)
    warm_start: bool = False
    persisted: bool = True
    duration_seconds: float = 0.0


class TrendReport(BaseModel):
    """Derived first-to-latest deltas over the training history."""

    domain: Domain | None = None
    run_count: int = 0
    first_accuracy: float | None = None
    latest_accuracy: float | None = None
    accuracy_delta: float | None = None
    first_loss: float | None = None
    latest_loss: float | None = None
    loss_delta: float | None = None
    f1_delta: float | None = None


# =============================================================================
# Predictions
# =============================================================================


class PredictionResult(BaseModel):
    """Domain-specific prediction plus status and provenance.

    ``value`` carries the probability (binary domains) or the continuous
    target (regression); ``status`` is the categorical interpretation.
    """

    model_config = ConfigDict(frozen=True)

    domain: Domain
    provenance: Provenance
    value: float | None = None
    status: str
    severity: Severity = Severity.SUCCESS
    message: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def from_model(self) -> bool:
        return self.provenance == Provenance.MODEL


class ComplicationRisk(BaseModel):
    """Rule-based post-operative complication risk score (0-100)."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0.0, le=100.0)
    category: str
    severity: Severity = Severity.SUCCESS
    message: str = ""
    provenance: Provenance = Provenance.HEURISTIC
