"""Bounded training history log and trend reporting."""

from __future__ import annotations

from cpb_ai.history.service import TrainingHistoryLog

__all__ = ["TrainingHistoryLog"]
