"""Dependency injection for FastAPI route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from cpb_ai.engine import Engine


def get_engine(request: Request) -> Engine:
    """Return the engine built by the app lifespan."""
    engine: Engine | None = getattr(request.app.state, "engine", None)
    if engine is None:  # pragma: no cover
        raise RuntimeError("get_engine() called before app lifespan initialised the engine.")
    return engine


EngineDep = Annotated[Engine, Depends(get_engine)]
