"""HTTP API for the CPB AI engine."""

from __future__ import annotations

from cpb_ai.api.app import create_app

__all__ = ["create_app"]
