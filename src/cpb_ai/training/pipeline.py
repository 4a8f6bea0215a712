"""Training Pipeline: one supervised training run for one domain.

A run extracts features, fits normalization, warm-starts or creates the
domain model, trains it with adaptive hyperparameters, a validation split
and early stopping, persists weights and normalization together, then
evaluates precision/recall/F1 in a separate pass and records the run.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
import time
from typing import TYPE_CHECKING, Any, TypeAlias

import numpy as np
import torch
from torch import nn

from cpb_ai.exceptions import (
    CpbAIError,
    InsufficientDataError,
    ModelTrainingError,
    error_context,
)
from cpb_ai.features.extractor import FeatureExtractor
from cpb_ai.observability import correlation_context
from cpb_ai.resources import BufferScope
from cpb_ai.schemas import ArtifactMetadata, TrainingRun
from cpb_ai.settings import TrainingSettings
from cpb_ai.training.callbacks import (
    CallbackRunner,
    MetricsRecorder,
    TrainingCallback,
    TrainingContext,
)
from cpb_ai.training.config import (
    HyperParameters,
    early_stopping_config,
    select_hyperparameters,
    validation_split_config,
)
from cpb_ai.training.data_splitting import ValidationSplitter
from cpb_ai.training.early_stopping import EarlyStopping
from cpb_ai.training.metrics import evaluate_binary, mean_absolute_error
from cpb_ai.types import TaskKind

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from cpb_ai.features.schema import DomainSchema
    from cpb_ai.history.service import TrainingHistoryLog
    from cpb_ai.normalization import NormalizationStore
    from cpb_ai.registry import ModelHandle, ModelRegistry
    from cpb_ai.schemas import NormalizationMetadata
    from cpb_ai.storage import ArtifactStorage

logger = logging.getLogger(__name__)

ProgressCallback: TypeAlias = "Callable[[int], Awaitable[None] | None]"


async def _notify(progress: ProgressCallback | None, percent: int) -> None:
    if progress is not None:
        result = progress(percent)
        if inspect.isawaitable(result):
            await result
    # one cooperative yield per epoch
    await asyncio.sleep(0)


class TrainingPipeline:
    """Train, persist and evaluate the model of a single domain."""

    def __init__(
        self,
        schema: DomainSchema,
        *,
        registry: ModelRegistry,
        normalization: NormalizationStore,
        storage: ArtifactStorage,
        history: TrainingHistoryLog,
        settings: TrainingSettings | None = None,
        callbacks: Sequence[TrainingCallback] = (),
    ) -> None:
        self._schema = schema
        self._registry = registry
        self._normalization = normalization
        self._storage = storage
        self._history = history
        self._settings = settings or TrainingSettings()
        self._extractor = FeatureExtractor(schema)
        self._splitter = ValidationSplitter(validation_split_config(self._settings))
        self._callbacks = list(callbacks)

    @property
    def schema(self) -> DomainSchema:
        return self._schema

    async def train(
        self,
        records: Sequence[Any],
        progress: ProgressCallback | None = None,
    ) -> TrainingRun:
        """Run one training attempt over *records*.

        Raises:
            InsufficientDataError: fewer usable records than the domain
                minimum.  Raised before any tensor is allocated.
            ModelTrainingError: the training loss became non-finite.  Nothing
                is persisted and no run is recorded.
        """
        domain = self._schema.domain
        with (
            correlation_context() as run_id,
            error_context(domain=domain.value, operation="train"),
        ):
            self._check_count(len(records), "record(s) supplied")
            batch = self._extractor.extract_batch(records)
            self._check_count(len(batch), "usable labelled record(s)")
            if batch.defaulted:
                logger.info("Defaults substituted for %s: %s", domain, batch.defaulted)

            logger.info("Training %s on %d record(s) [run=%s]", domain, len(batch), run_id)
            started = time.perf_counter()

            async with self._registry.checkout(domain) as handle:
                warm_start = handle.warm_start
                hyper = select_hyperparameters(len(batch), self._settings, warm_start=warm_start)
                with BufferScope(f"train:{domain}") as scope:
                    features = scope.track(batch.features)
                    labels = scope.track(batch.labels)
                    norm = self._normalization.fit(features, self._schema.feature_names)
                    x = scope.track(torch.from_numpy(self._normalization.apply(features, norm)))
                    y = scope.track(torch.from_numpy(labels).reshape(-1, 1))

                    stratify = labels if self._schema.task == TaskKind.BINARY else None
                    split = self._splitter.split(len(batch), stratify)
                    metrics, epochs_run, stopped = await self._fit(
                        handle, x, y, split.train, split.val, hyper, progress, scope
                    )

                    handle.metadata = ArtifactMetadata(
                        domain=domain,
                        task=self._schema.task,
                        feature_names=self._schema.feature_names,
                        architecture=handle.metadata.architecture,
                        record_count=len(batch),
                    )
                    persisted = await self._persist(handle, norm)
                    evaluation = self._evaluate(handle.network, x, y, scope)

            run = TrainingRun(
                domain=domain,
                loss=metrics["loss"],
                accuracy=metrics.get("accuracy"),
                val_loss=metrics.get("val_loss"),
                val_accuracy=metrics.get("val_accuracy"),
                epochs_run=epochs_run,
                epoch_budget=hyper.epochs,
                batch_size=hyper.batch_size,
                early_stopped=stopped,
                record_count=len(batch),
                warm_start=warm_start,
                persisted=persisted,
                duration_seconds=round(time.perf_counter() - started, 3),
                **evaluation,
            )
            await self._history.append(run)
            logger.info(
                "Finished %s training: loss=%.4f epochs=%d/%d persisted=%s",
                domain,
                run.loss,
                run.epochs_run,
                run.epoch_budget,
                run.persisted,
            )
            return run

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check_count(self, count: int, what: str) -> None:
        required = self._schema.min_records
        if count < required:
            raise InsufficientDataError(
                f"Not enough data to train {self._schema.domain}: {count} {what}, "
                f"at least {required} required",
                required=required,
                received=count,
            )

    def _loss_fn(self) -> nn.Module:
        if self._schema.task == TaskKind.BINARY:
            return nn.BCELoss()
        return nn.MSELoss()

    async def _fit(
        self,
        handle: ModelHandle,
        x: torch.Tensor,
        y: torch.Tensor,
        train_idx: np.ndarray,
        val_idx: np.ndarray,
        hyper: HyperParameters,
        progress: ProgressCallback | None,
        scope: BufferScope,
    ) -> tuple[dict[str, float], int, bool]:
        network = handle.network
        loss_fn = self._loss_fn()
        # A new optimizer per run, also when warm-starting from saved weights.
        optimizer = torch.optim.Adam(network.parameters(), lr=hyper.learning_rate)
        generator = torch.Generator().manual_seed(self._settings.random_seed)

        x_train = scope.track(x[torch.from_numpy(train_idx)])
        y_train = scope.track(y[torch.from_numpy(train_idx)])
        x_val = scope.track(x[torch.from_numpy(val_idx)])
        y_val = scope.track(y[torch.from_numpy(val_idx)])

        recorder = MetricsRecorder()
        stopper = EarlyStopping(early_stopping_config(self._settings))
        runner = CallbackRunner([recorder, stopper, *self._callbacks])
        context = TrainingContext(domain=handle.domain, epoch_budget=hyper.epochs)

        runner.on_train_start(context)
        for epoch in range(hyper.epochs):
            metrics = self._run_epoch(
                network, loss_fn, optimizer, x_train, y_train, hyper.batch_size, generator
            )
            metrics.update(self._validate(network, loss_fn, x_val, y_val))
            if not math.isfinite(metrics["loss"]):
                raise ModelTrainingError(
                    f"Training of {handle.domain} diverged at epoch {epoch}",
                    details={"epoch": epoch, "loss": str(metrics["loss"])},
                )
            runner.on_epoch_end(epoch, metrics, context)
            await _notify(progress, context.percent_complete)
            if runner.should_stop():
                break
        runner.on_train_end(context)

        optimizer.state.clear()
        return recorder.last, context.epochs_run, stopper.stopped

    def _run_epoch(
        self,
        network: nn.Sequential,
        loss_fn: nn.Module,
        optimizer: torch.optim.Optimizer,
        x: torch.Tensor,
        y: torch.Tensor,
        batch_size: int,
        generator: torch.Generator,
    ) -> dict[str, float]:
        network.train()
        order = torch.randperm(x.shape[0], generator=generator)
        total_loss = 0.0
        correct = 0
        for start in range(0, x.shape[0], batch_size):
            idx = order[start : start + batch_size]
            xb, yb = x[idx], y[idx]
            optimizer.zero_grad()
            out = network(xb)
            loss = loss_fn(out, yb)
            loss.backward()
            optimizer.step()
            total_loss += float(loss.item()) * xb.shape[0]
            if self._schema.task == TaskKind.BINARY:
                correct += int(((out.detach() > 0.5) == (yb > 0.5)).sum().item())

        n = x.shape[0]
        metrics = {"loss": total_loss / n}
        if self._schema.task == TaskKind.BINARY:
            metrics["accuracy"] = correct / n
        return metrics

    def _validate(
        self,
        network: nn.Sequential,
        loss_fn: nn.Module,
        x: torch.Tensor,
        y: torch.Tensor,
    ) -> dict[str, float]:
        if x.shape[0] == 0:
            return {}
        network.eval()
        with torch.no_grad():
            out = network(x)
            metrics = {"val_loss": float(loss_fn(out, y).item())}
            if self._schema.task == TaskKind.BINARY:
                metrics["val_accuracy"] = float(((out > 0.5) == (y > 0.5)).float().mean().item())
        return metrics

    async def _persist(self, handle: ModelHandle, norm: NormalizationMetadata) -> bool:
        """Commit weights and normalization in one storage transaction.

        A failure is logged and reported through ``persisted=False``; the
        run's metrics are still returned.
        """
        try:
            async with self._storage.transaction(handle.domain) as staging:
                await self._registry.save(handle, staging)
                await self._normalization.persist(handle.domain, norm, staging=staging)
        except (CpbAIError, OSError):
            logger.exception(
                "Failed to persist %s model; metrics are still reported", handle.domain
            )
            return False
        logger.info("Persisted %s model and normalization metadata", handle.domain)
        return True

    def _evaluate(
        self,
        network: nn.Sequential,
        x: torch.Tensor,
        y: torch.Tensor,
        scope: BufferScope,
    ) -> dict[str, float | None]:
        """Score the full normalized training set with the trained network."""
        network.eval()
        with torch.no_grad():
            scores = scope.track(network(x))
        predicted = scores.numpy().reshape(-1)
        actual = y.numpy().reshape(-1)

        if self._schema.task == TaskKind.REGRESSION:
            return {"mean_absolute_error": mean_absolute_error(predicted, actual)}

        result = evaluate_binary(predicted, actual)
        logger.debug(
            "Confusion matrix for %s: tp=%d fp=%d fn=%d tn=%d",
            self._schema.domain,
            result.true_positives,
            result.false_positives,
            result.false_negatives,
            result.true_negatives,
        )
        return {"precision": result.precision, "recall": result.recall, "f1": result.f1}
