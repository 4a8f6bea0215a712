"""Health router: artifact availability and live buffer counts."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from cpb_ai.api.deps import EngineDep  # noqa: TC001 - FastAPI needs runtime access

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health")
async def health(engine: EngineDep) -> dict[str, Any]:
    """Liveness plus per-domain model status."""
    return {"status": "healthy", **engine.status()}
