"""Database layer for the training history log."""

from __future__ import annotations

from cpb_ai.db.engine import create_async_engine, create_session_factory, create_tables
from cpb_ai.db.models import Base, TrainingRunRecord

__all__ = [
    "Base",
    "TrainingRunRecord",
    "create_async_engine",
    "create_session_factory",
    "create_tables",
]
