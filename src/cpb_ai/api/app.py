"""FastAPI application factory with lifespan management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

import cpb_ai
from cpb_ai.api.errors import register_error_handlers
from cpb_ai.api.middleware import CorrelationIdMiddleware
from cpb_ai.api.routers.health import router as health_router
from cpb_ai.api.routers.prediction import router as prediction_router
from cpb_ai.api.routers.training import router as training_router
from cpb_ai.engine import build_engine
from cpb_ai.observability import setup_logging
from cpb_ai.settings import EngineSettings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the engine on startup and dispose it on shutdown."""
    settings: EngineSettings = app.state.settings
    engine = await build_engine(settings)
    app.state.engine = engine
    logger.info("CPB AI API started (artifacts=%s)", settings.artifact_dir)

    yield

    await engine.close()
    logger.info("CPB AI API shut down")


def create_app(settings: EngineSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = EngineSettings()

    setup_logging(settings.log_level, json_format=settings.json_logs)

    app = FastAPI(
        title="CPB AI Engine",
        version=cpb_ai.__version__,
        lifespan=_lifespan,
    )
    app.state.settings = settings

    app.add_middleware(CorrelationIdMiddleware)
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(prediction_router)
    app.include_router(training_router)

    return app
