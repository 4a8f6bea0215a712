"""History database: engine construction and schema bootstrap."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.ext.asyncio import (
    create_async_engine as _sa_create_async_engine,
)
from sqlalchemy.pool import StaticPool

from cpb_ai.db.models import Base

logger = logging.getLogger(__name__)


def create_async_engine(database_url: str) -> AsyncEngine:
    """Open the training-history database at *database_url*.

    File-backed SQLite databases get their parent directory created on
    demand.  An in-memory SQLite database is pinned to a single shared
    connection, otherwise every session would see its own empty schema.
    """
    url = make_url(database_url)
    kwargs: dict[str, object] = {}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Opening history database %s", url.render_as_string(hide_password=True))
    return _sa_create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows are read back after commit when building TrainingRun records.
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
