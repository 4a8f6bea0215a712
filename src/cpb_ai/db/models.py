"""SQLAlchemy 2.0 ORM models for the CPB AI engine."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs runtime access

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
)


class Base(DeclarativeBase):
    """Declarative base for all CPB AI models."""


class TrainingRunRecord(Base):
    """One completed training run, as stored in the bounded history log."""

    __tablename__ = "training_runs"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    domain: Mapped[str] = mapped_column(String(50), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    loss: Mapped[float] = mapped_column(Float)
    accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)
    val_loss: Mapped[float | None] = mapped_column(Float, nullable=True)
    val_accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)
    epochs_run: Mapped[int] = mapped_column(Integer)
    epoch_budget: Mapped[int] = mapped_column(Integer)
    batch_size: Mapped[int] = mapped_column(Integer)
    early_stopped: Mapped[bool] = mapped_column(Boolean, default=False)
    precision: Mapped[float | None] = mapped_column(Float, nullable=True)
    recall: Mapped[float | None] = mapped_column(Float, nullable=True)
    f1: Mapped[float | None] = mapped_column(Float, nullable=True)
    mean_absolute_error: Mapped[float | None] = mapped_column(Float, nullable=True)
    record_count: Mapped[int] = mapped_column(Integer)
    warm_start: Mapped[bool] = mapped_column(Boolean, default=False)
    persisted: Mapped[bool] = mapped_column(Boolean, default=True)
    duration_seconds: Mapped[float] = mapped_column(Float, default=0.0)
