"""Early stopping on the validation loss stream."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cpb_ai.training.callbacks import TrainingCallback

if TYPE_CHECKING:
    from cpb_ai.training.callbacks import TrainingContext
    from cpb_ai.training.config import EarlyStoppingConfig

logger = logging.getLogger(__name__)


class EarlyStopping(TrainingCallback):
    """Request a stop after ``patience`` epochs without improvement.

    An epoch improves on the best value seen so far when it beats it by
    more than ``min_delta`` in the configured direction (``min`` for
    losses).  Epochs whose metrics lack the monitored key are ignored.
    """

    def __init__(self, config: EarlyStoppingConfig) -> None:
        self._config = config
        self._best: float | None = None
        self._best_epoch: int | None = None
        self._stale = 0
        self._stopped = False

    @property
    def best_value(self) -> float | None:
        return self._best

    @property
    def best_epoch(self) -> int | None:
        return self._best_epoch

    @property
    def epochs_without_improvement(self) -> int:
        return self._stale

    @property
    def stopped(self) -> bool:
        return self._stopped

    def on_epoch_end(
        self,
        epoch: int,
        metrics: dict[str, float],
        context: TrainingContext,
    ) -> None:
        if not self._config.enabled or self._stopped:
            return
        value = metrics.get(self._config.metric)
        if value is None:
            logger.debug("No %s in epoch %d of %s", self._config.metric, epoch, context.domain)
            return

        if self._improves(value):
            self._best, self._best_epoch, self._stale = value, epoch, 0
            context.best_metric, context.best_epoch = value, epoch
            return

        self._stale += 1
        if self._stale >= self._config.patience:
            self._stopped = True
            context.stop_requested = True
            logger.info(
                "Stopping %s early at epoch %d: %s has not improved since epoch %s",
                context.domain,
                epoch,
                self._config.metric,
                self._best_epoch,
            )

    def should_stop(self) -> bool:
        return self._stopped

    def _improves(self, value: float) -> bool:
        if self._best is None:
            return True
        margin = self._config.min_delta
        if self._config.mode == "min":
            return value < self._best - margin
        return value > self._best + margin
