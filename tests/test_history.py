"""Tests for cpb_ai.history: bounded training history and trends."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from cpb_ai.db.engine import create_async_engine, create_session_factory, create_tables
from cpb_ai.history.service import TrainingHistoryLog
from cpb_ai.schemas import TrainingRun
from cpb_ai.types import Domain

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine("sqlite+aiosqlite://")
    await create_tables(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def history(session_factory: async_sessionmaker[AsyncSession]) -> TrainingHistoryLog:
    return TrainingHistoryLog(session_factory)


def _run(
    domain: Domain = Domain.TRANSFUSION,
    *,
    loss: float = 0.5,
    accuracy: float | None = 0.7,
    f1: float | None = 0.6,
    record_count: int = 10,
) -> TrainingRun:
    return TrainingRun(
        domain=domain,
        loss=loss,
        accuracy=accuracy,
        f1=f1,
        epochs_run=5,
        epoch_budget=50,
        batch_size=8,
        record_count=record_count,
    )


# ======================================================================
# append / list
# ======================================================================


class TestAppendList:
    async def test_empty(self, history: TrainingHistoryLog) -> None:
        assert await history.list() == []
        assert await history.count() == 0

    async def test_round_trip(self, history: TrainingHistoryLog) -> None:
        run = _run(record_count=7)
        await history.append(run)
        (stored,) = await history.list()
        assert stored.record_count == 7
        assert stored.loss == run.loss
        assert stored.domain == Domain.TRANSFUSION
        assert stored.timestamp.tzinfo is not None

    async def test_oldest_first(self, history: TrainingHistoryLog) -> None:
        for i in range(3):
            await history.append(_run(record_count=i + 5))
        assert [r.record_count for r in await history.list()] == [5, 6, 7]

    async def test_limit_returns_most_recent(self, history: TrainingHistoryLog) -> None:
        for i in range(5):
            await history.append(_run(record_count=i + 5))
        assert [r.record_count for r in await history.list(limit=2)] == [8, 9]

    async def test_filter_by_domain(self, history: TrainingHistoryLog) -> None:
        await history.append(_run(Domain.TRANSFUSION))
        await history.append(_run(Domain.BLOOD_GAS))
        await history.append(_run(Domain.TRANSFUSION))
        assert len(await history.list(Domain.TRANSFUSION)) == 2
        assert len(await history.list("blood-gas")) == 1

    async def test_cap_evicts_oldest(self, history: TrainingHistoryLog) -> None:
        for i in range(51):
            await history.append(_run(record_count=i + 1))
        runs = await history.list()
        assert len(runs) == 50
        assert runs[0].record_count == 2
        assert runs[-1].record_count == 51

    async def test_cap_is_global(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        history = TrainingHistoryLog(session_factory, max_entries=3)
        await history.append(_run(Domain.TRANSFUSION, record_count=1))
        for i in range(3):
            await history.append(_run(Domain.PERFUSION, record_count=i + 2))
        assert await history.list(Domain.TRANSFUSION) == []
        assert await history.count() == 3

    async def test_invalid_cap(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        with pytest.raises(ValueError):
            TrainingHistoryLog(session_factory, max_entries=0)

    async def test_clear(self, history: TrainingHistoryLog) -> None:
        await history.append(_run())
        await history.append(_run())
        assert await history.clear() == 2
        assert await history.count() == 0

    async def test_timestamp_preserved(self, history: TrainingHistoryLog) -> None:
        stamp = datetime(2026, 3, 1, 12, 30, tzinfo=UTC)
        await history.append(_run().model_copy(update={"timestamp": stamp}))
        (stored,) = await history.list()
        assert stored.timestamp == stamp


# ======================================================================
# trend
# ======================================================================


class TestTrend:
    async def test_empty(self, history: TrainingHistoryLog) -> None:
        report = await history.trend()
        assert report.run_count == 0
        assert report.accuracy_delta is None

    async def test_deltas(self, history: TrainingHistoryLog) -> None:
        await history.append(_run(loss=0.9, accuracy=0.5, f1=0.4))
        await history.append(_run(loss=0.7, accuracy=0.6, f1=0.5))
        await history.append(_run(loss=0.4, accuracy=0.8, f1=0.7))
        report = await history.trend()
        assert report.run_count == 3
        assert report.first_accuracy == pytest.approx(0.5)
        assert report.latest_accuracy == pytest.approx(0.8)
        assert report.accuracy_delta == pytest.approx(0.3)
        assert report.loss_delta == pytest.approx(-0.5)
        assert report.f1_delta == pytest.approx(0.3)

    async def test_per_domain(self, history: TrainingHistoryLog) -> None:
        await history.append(_run(Domain.TRANSFUSION, accuracy=0.5))
        await history.append(_run(Domain.PERFUSION, accuracy=None, f1=None))
        report = await history.trend(Domain.PERFUSION)
        assert report.domain == Domain.PERFUSION
        assert report.run_count == 1
        assert report.accuracy_delta is None
        assert report.loss_delta == 0.0


# ======================================================================
# Database engine
# ======================================================================


class TestDatabaseEngine:
    async def test_file_database_creates_parent(self, tmp_path: Path) -> None:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/nested/history.db")
        try:
            assert (tmp_path / "nested").is_dir()
            await create_tables(engine)
            log = TrainingHistoryLog(create_session_factory(engine))
            await log.append(_run())
            assert await log.count() == 1
        finally:
            await engine.dispose()

    async def test_memory_database_shared_across_sessions(self) -> None:
        engine = create_async_engine("sqlite+aiosqlite:///:memory:")
        try:
            await create_tables(engine)
            factory = create_session_factory(engine)
            await TrainingHistoryLog(factory).append(_run())
            assert await TrainingHistoryLog(factory).count() == 1
        finally:
            await engine.dispose()
