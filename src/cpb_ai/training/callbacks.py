"""Epoch-loop hooks.

The epoch loop publishes one metrics dict per epoch (``loss``, plus
``accuracy``, ``val_loss`` and ``val_accuracy`` where they apply).  Hooks
consume that live stream and may ask the loop to stop.  They never see the
post-training evaluation pass, which is computed separately.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cpb_ai.types import Domain


@dataclass
class TrainingContext:
    """Mutable state of one epoch loop, shared by its hooks."""

    domain: Domain
    epoch_budget: int
    epochs_run: int = 0
    best_metric: float | None = None
    best_epoch: int | None = None
    stop_requested: bool = False

    @property
    def percent_complete(self) -> int:
        if self.epoch_budget <= 0:
            return 100
        return min(100, int(self.epochs_run * 100 / self.epoch_budget))


class TrainingCallback:
    """Base hook. Subclasses override what they need."""

    def on_train_start(self, context: TrainingContext) -> None:
        return None

    def on_epoch_end(
        self,
        epoch: int,
        metrics: dict[str, float],
        context: TrainingContext,
    ) -> None:
        return None

    def on_train_end(self, context: TrainingContext) -> None:
        return None

    def should_stop(self) -> bool:
        return False


class MetricsRecorder(TrainingCallback):
    """Per-epoch metric stream of the run, oldest epoch first."""

    def __init__(self) -> None:
        self.epochs: list[dict[str, float]] = []

    def on_train_start(self, context: TrainingContext) -> None:
        self.epochs.clear()

    def on_epoch_end(
        self,
        epoch: int,
        metrics: dict[str, float],
        context: TrainingContext,
    ) -> None:
        self.epochs.append(dict(metrics))

    @property
    def last(self) -> dict[str, float]:
        """Metrics of the final epoch run, or ``{}`` before the first one."""
        return self.epochs[-1] if self.epochs else {}

    def series(self, metric: str) -> list[float]:
        return [m[metric] for m in self.epochs if metric in m]


class CallbackRunner:
    """Fan the epoch loop's events out to its hooks, in order."""

    def __init__(self, callbacks: Iterable[TrainingCallback] = ()) -> None:
        self._callbacks = list(callbacks)

    @property
    def callbacks(self) -> list[TrainingCallback]:
        return list(self._callbacks)

    def on_train_start(self, context: TrainingContext) -> None:
        for callback in self._callbacks:
            callback.on_train_start(context)

    def on_epoch_end(
        self,
        epoch: int,
        metrics: dict[str, float],
        context: TrainingContext,
    ) -> None:
        context.epochs_run = epoch + 1
        for callback in self._callbacks:
            callback.on_epoch_end(epoch, metrics, context)

    def on_train_end(self, context: TrainingContext) -> None:
        for callback in self._callbacks:
            callback.on_train_end(context)

    def should_stop(self) -> bool:
        return any(callback.should_stop() for callback in self._callbacks)
