"""Training configuration: early stopping, validation split, hyperparameters."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from cpb_ai.settings import TrainingSettings

# =============================================================================
# Sub-configs
# =============================================================================


class EarlyStoppingConfig(BaseModel):
    """Early stopping on a monitored epoch metric."""

    enabled: bool = True
    patience: int = Field(default=5, ge=1)
    min_delta: float = Field(default=0.0, ge=0.0)
    metric: str = "val_loss"
    mode: Literal["min", "max"] = "min"


class ValidationSplitConfig(BaseModel):
    """Held-out validation fraction of each training batch."""

    fraction: float = Field(default=0.2, gt=0.0, lt=1.0)
    stratify: bool = True
    random_seed: int = 42


class HyperParameters(BaseModel):
    """Values selected for one training run."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(ge=1)
    epochs: int = Field(ge=1)
    learning_rate: float = Field(gt=0.0)


# =============================================================================
# Adaptive selection
# =============================================================================


def select_hyperparameters(
    record_count: int,
    settings: TrainingSettings | None = None,
    *,
    warm_start: bool = False,
) -> HyperParameters:
    """Pick batch size, epoch budget and learning rate from the dataset size.

    ``batch_size = clamp(N // 50, 8, 128)``; the epoch budget is 10 above
    5000 records and 50 otherwise.  Warm starts use the slower rate.
    """
    cfg = settings or TrainingSettings()
    batch_size = min(
        cfg.max_batch_size,
        max(cfg.min_batch_size, record_count // cfg.batch_divisor),
    )
    if record_count > cfg.large_dataset_threshold:
        epochs = cfg.large_dataset_epochs
    else:
        epochs = cfg.small_dataset_epochs
    learning_rate = cfg.warm_start_learning_rate if warm_start else cfg.learning_rate
    return HyperParameters(batch_size=batch_size, epochs=epochs, learning_rate=learning_rate)


def early_stopping_config(settings: TrainingSettings) -> EarlyStoppingConfig:
    return EarlyStoppingConfig(patience=settings.patience, min_delta=settings.min_delta)


def validation_split_config(settings: TrainingSettings) -> ValidationSplitConfig:
    return ValidationSplitConfig(
        fraction=settings.validation_fraction,
        random_seed=settings.random_seed,
    )
