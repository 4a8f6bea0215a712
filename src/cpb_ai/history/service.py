"""Training History Log: bounded, append-only store of completed runs."""

from __future__ import annotations

import logging
from datetime import UTC
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select

from cpb_ai.db.models import TrainingRunRecord
from cpb_ai.schemas import TrainingRun, TrendReport
from cpb_ai.types import Domain

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 50


class TrainingHistoryLog:
    """Global FIFO log of :class:`TrainingRun` entries.

    At most ``max_entries`` runs are kept across all domains; appending
    beyond the cap evicts the oldest entries first.  Runs are never
    updated once written.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._session_factory = session_factory
        self._max_entries = max_entries

    @property
    def max_entries(self) -> int:
        return self._max_entries

    async def append(self, run: TrainingRun) -> TrainingRun:
        """Store *run* and evict the oldest entries beyond the cap."""
        async with self._session_factory() as session:
            session.add(self._to_record(run))
            await session.flush()

            total = (await session.execute(select(func.count(TrainingRunRecord.id)))).scalar_one()
            overflow = total - self._max_entries
            if overflow > 0:
                oldest = (
                    select(TrainingRunRecord.id)
                    .order_by(TrainingRunRecord.id.asc())
                    .limit(overflow)
                )
                ids = list((await session.execute(oldest)).scalars().all())
                await session.execute(
                    delete(TrainingRunRecord).where(TrainingRunRecord.id.in_(ids))
                )
                logger.debug("Evicted %d oldest training run(s)", len(ids))
            await session.commit()

        logger.info(
            "Recorded %s training run (records=%d, loss=%.4f)",
            run.domain,
            run.record_count,
            run.loss,
        )
        return run

    async def list(
        self,
        domain: Domain | str | None = None,
        *,
        limit: int | None = None,
    ) -> list[TrainingRun]:
        """Return runs oldest first, optionally for a single domain.

        With *limit*, only the most recent ``limit`` runs are returned.
        """
        stmt = select(TrainingRunRecord)
        if domain is not None:
            stmt = stmt.where(TrainingRunRecord.domain == Domain(domain).value)
        stmt = stmt.order_by(TrainingRunRecord.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session_factory() as session:
            records = (await session.execute(stmt)).scalars().all()
        return [self._to_run(r) for r in reversed(records)]

    async def count(self) -> int:
        async with self._session_factory() as session:
            return (await session.execute(select(func.count(TrainingRunRecord.id)))).scalar_one()

    async def trend(self, domain: Domain | str | None = None) -> TrendReport:
        """First-to-latest deltas over the stored runs. Nothing is stored."""
        runs = await self.list(domain)
        report_domain = Domain(domain) if domain is not None else None
        if not runs:
            return TrendReport(domain=report_domain)

        first, latest = runs[0], runs[-1]
        return TrendReport(
            domain=report_domain,
            run_count=len(runs),
            first_accuracy=first.accuracy,
            latest_accuracy=latest.accuracy,
            accuracy_delta=_delta(first.accuracy, latest.accuracy),
            first_loss=first.loss,
            latest_loss=latest.loss,
            loss_delta=_delta(first.loss, latest.loss),
            f1_delta=_delta(first.f1, latest.f1),
        )

    async def clear(self) -> int:
        """Delete every stored run and return how many were removed."""
        async with self._session_factory() as session:
            result = await session.execute(delete(TrainingRunRecord))
            await session.commit()
        removed = int(result.rowcount or 0)
        logger.info("Cleared %d training run(s) from history", removed)
        return removed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_record(run: TrainingRun) -> TrainingRunRecord:
        return TrainingRunRecord(
            domain=run.domain.value,
            timestamp=run.timestamp,
            loss=run.loss,
            accuracy=run.accuracy,
            val_loss=run.val_loss,
            val_accuracy=run.val_accuracy,
            epochs_run=run.epochs_run,
            epoch_budget=run.epoch_budget,
            batch_size=run.batch_size,
            early_stopped=run.early_stopped,
            precision=run.precision,
            recall=run.recall,
            f1=run.f1,
            mean_absolute_error=run.mean_absolute_error,
            record_count=run.record_count,
            warm_start=run.warm_start,
            persisted=run.persisted,
            duration_seconds=run.duration_seconds,
        )

    @staticmethod
    def _to_run(record: TrainingRunRecord) -> TrainingRun:
        timestamp = record.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return TrainingRun(
            domain=Domain(record.domain),
            timestamp=timestamp,
            loss=record.loss,
            accuracy=record.accuracy,
            val_loss=record.val_loss,
            val_accuracy=record.val_accuracy,
            epochs_run=record.epochs_run,
            epoch_budget=record.epoch_budget,
            batch_size=record.batch_size,
            early_stopped=record.early_stopped,
            precision=record.precision,
            recall=record.recall,
            f1=record.f1,
            mean_absolute_error=record.mean_absolute_error,
            record_count=record.record_count,
            warm_start=record.warm_start,
            persisted=record.persisted,
            duration_seconds=record.duration_seconds,
        )


def _delta(first: float | None, latest: float | None) -> float | None:
    if first is None or latest is None:
        return None
    return latest - first
