"""Model inference with deterministic heuristic fallback."""

from __future__ import annotations

from cpb_ai.inference.service import InferenceService

__all__ = ["InferenceService"]
