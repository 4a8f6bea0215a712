"""Shared test fixtures for cpb_ai."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient

from cpb_ai.api.app import create_app
from cpb_ai.datasets.reports import CLINICAL_BASELINE
from cpb_ai.engine import build_engine
from cpb_ai.settings import EngineSettings, TrainingSettings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from fastapi import FastAPI

    from cpb_ai.engine import Engine


@pytest.fixture
def settings(tmp_path: Path) -> EngineSettings:
    """Settings with a temporary artifact dir and in-memory history database."""
    return EngineSettings(
        artifact_dir=tmp_path / "models",
        database_url="sqlite+aiosqlite://",
        log_level="WARNING",
        json_logs=False,
        # keep test runs short; the budget still exercises early stopping
        training=TrainingSettings(small_dataset_epochs=12, patience=3),
    )


@pytest.fixture
async def engine(settings: EngineSettings) -> AsyncGenerator[Engine, None]:
    """A fully wired engine, closed after the test."""
    eng = await build_engine(settings)
    yield eng
    await eng.close()


@pytest.fixture
def app(settings: EngineSettings) -> FastAPI:
    """Create a FastAPI test app."""
    return create_app(settings)


@pytest.fixture
async def client(app: FastAPI, engine: Engine) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app with full app state."""
    # ASGITransport does not run the lifespan; set the state it would build
    app.state.engine = engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def baseline() -> list[dict[str, Any]]:
    """The seven-record transfusion baseline (4 positives, 3 negatives)."""
    return copy.deepcopy(CLINICAL_BASELINE)


@pytest.fixture
def perfusion_records() -> list[dict[str, Any]]:
    """Flat perfusion records whose target flow is ``bsa * target_ci``."""
    records = []
    for i in range(12):
        bsa = 1.5 + 0.05 * i
        ci = 2.2 + 0.03 * i
        records.append(
            {"bsa": bsa, "target_ci": ci, "temperature": 34 + i % 3, "target_flow": bsa * ci}
        )
    return records
