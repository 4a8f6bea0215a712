"""Shared type definitions, enums, and constants for the CPB AI engine."""

from __future__ import annotations

from enum import StrEnum

# =============================================================================
# Prediction domains
# =============================================================================


class Domain(StrEnum):
    """Prediction tasks, each with its own model, metadata and feature schema."""

    TRANSFUSION = "transfusion"
    PERFUSION = "perfusion"
    BLOOD_GAS = "blood-gas"
    FLUID_BALANCE = "fluid-balance"


class TaskKind(StrEnum):
    """Output head of a domain model."""

    BINARY = "binary"
    REGRESSION = "regression"


# =============================================================================
# Model lifecycle
# =============================================================================


class ModelState(StrEnum):
    """Per-call lifecycle of a domain model held by the registry.

    ``UNLOADED → LOADING → {LOADED | FRESH} → IN_USE → DISPOSED``
    """

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FRESH = "fresh"
    IN_USE = "in_use"
    DISPOSED = "disposed"


# =============================================================================
# Predictions
# =============================================================================


class Provenance(StrEnum):
    """Where a prediction came from."""

    MODEL = "model"
    HEURISTIC = "heuristic"


class Severity(StrEnum):
    """UI severity attached to a prediction."""

    SUCCESS = "success"
    WARNING = "warning"
    DESTRUCTIVE = "destructive"


class TrainingPolicy(StrEnum):
    """What to do when a domain is already training."""

    REJECT = "reject"
    QUEUE = "queue"


# =============================================================================
# Constants
# =============================================================================

ARTIFACT_SCHEMA_VERSION = 1
