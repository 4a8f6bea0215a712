"""Prediction REST API: /api/v1/predict/*."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body

from cpb_ai.api.deps import EngineDep  # noqa: TC001 - FastAPI needs runtime access
from cpb_ai.schemas import ComplicationRisk, PredictionResult

router = APIRouter(prefix="/api/v1/predict", tags=["prediction"])


@router.post("/complications")
async def predict_complications(
    engine: EngineDep,
    data: Annotated[dict[str, Any], Body()],
) -> ComplicationRisk:
    """Rule-based complication risk score."""
    return engine.inference.predict_complications(data)


@router.post("/{domain}")
async def predict(
    domain: str,
    engine: EngineDep,
    data: Annotated[dict[str, Any], Body()],
) -> PredictionResult:
    """Predict for *domain*; falls back to heuristics when no model is usable."""
    return await engine.inference.predict(domain, data)
