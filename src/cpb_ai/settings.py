"""Engine settings and feature sub-configurations."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cpb_ai.types import TrainingPolicy


class TrainingSettings(BaseModel):
    """Defaults applied to every training run."""

    validation_fraction: float = Field(default=0.2, gt=0.0, lt=1.0)
    patience: int = Field(default=5, ge=1)
    min_delta: float = Field(default=0.0, ge=0.0)
    min_batch_size: int = Field(default=8, ge=1)
    max_batch_size: int = Field(default=128, ge=1)
    batch_divisor: int = Field(default=50, ge=1)
    large_dataset_threshold: int = Field(default=5000, ge=1)
    small_dataset_epochs: int = Field(default=50, ge=1)
    large_dataset_epochs: int = Field(default=10, ge=1)
    learning_rate: float = Field(default=0.01, gt=0.0)
    warm_start_learning_rate: float = Field(
        default=0.005,
        gt=0.0,
        description="Slower rate used when fine-tuning a previously saved model.",
    )
    random_seed: int = 42
    concurrency_policy: TrainingPolicy = TrainingPolicy.REJECT


class HistorySettings(BaseModel):
    """Training history log retention."""

    max_entries: int = Field(default=50, ge=1)


class NormalizationSettings(BaseModel):
    """Min/max scaling behaviour."""

    epsilon: float = Field(default=1e-6, gt=0.0)
    clip_at_inference: bool = True


class EngineSettings(BaseSettings):
    """Central configuration for the CPB AI engine.

    All values can be overridden via environment variables prefixed
    with ``CPB_AI_``.  Nested models use ``__`` as a delimiter,
    e.g. ``CPB_AI_TRAINING__PATIENCE``.
    """

    model_config = SettingsConfigDict(
        env_prefix="CPB_AI_",
        env_nested_delimiter="__",
    )

    # -- Core -----------------------------------------------------------------

    artifact_dir: Path = Path("./cpb-ai-models")
    database_url: str = "sqlite+aiosqlite:///./cpb_ai.db"
    log_level: str = "INFO"
    json_logs: bool = True

    # -- HTTP -----------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = 9100

    # -- Feature sub-configs --------------------------------------------------

    training: TrainingSettings = Field(default_factory=TrainingSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    normalization: NormalizationSettings = Field(default_factory=NormalizationSettings)
