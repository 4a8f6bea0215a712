"""Training REST API: /api/v1/training/*."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Query
from pydantic import BaseModel

from cpb_ai.api.deps import EngineDep  # noqa: TC001 - FastAPI needs runtime access
from cpb_ai.datasets.router import DatasetRouter
from cpb_ai.features.schema import get_schema
from cpb_ai.schemas import TrainingRun, TrendReport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/training", tags=["training"])


# ------------------------------------------------------------------
# Request schemas
# ------------------------------------------------------------------


class ReportsRequest(BaseModel):
    """Body for POST /reports."""

    reports: list[dict[str, Any]]


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------


@router.post("")
async def train_dataset(
    engine: EngineDep,
    payload: Annotated[Any, Body()],
) -> TrainingRun:
    """Detect the domain of an uploaded dataset and train it."""
    return await engine.training.train_dataset(payload)


@router.post("/bootstrap")
async def bootstrap(engine: EngineDep) -> TrainingRun:
    """Train the transfusion model on the built-in clinical baseline."""
    return await engine.training.bootstrap_baseline()


@router.post("/reports")
async def train_from_reports(engine: EngineDep, body: ReportsRequest) -> TrainingRun:
    """Train the transfusion model from stored CPB reports."""
    return await engine.training.train_from_reports(body.reports)


@router.get("/history")
async def history(
    engine: EngineDep,
    domain: str | None = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> list[TrainingRun]:
    """Stored training runs, oldest first."""
    key = get_schema(domain).domain if domain is not None else None
    return await engine.history.list(key, limit=limit)


@router.delete("/history")
async def clear_history(engine: EngineDep) -> dict[str, int]:
    return {"removed": await engine.history.clear()}


@router.get("/trend")
async def trend(engine: EngineDep, domain: str | None = None) -> TrendReport:
    """First-to-latest metric deltas."""
    key = get_schema(domain).domain if domain is not None else None
    return await engine.history.trend(key)


@router.post("/{domain}")
async def train_domain(
    domain: str,
    engine: EngineDep,
    payload: Annotated[Any, Body()],
) -> TrainingRun:
    """Train *domain* on the records held by *payload*."""
    schema = get_schema(domain)
    records = DatasetRouter.locate_records(payload)
    return await engine.training.train(schema.domain, records)
