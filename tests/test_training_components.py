"""Tests for cpb_ai.training: hyperparameters, metrics, splitting, callbacks."""

from __future__ import annotations

import numpy as np
import pytest

from cpb_ai.settings import TrainingSettings
from cpb_ai.training.callbacks import CallbackRunner, MetricsRecorder, TrainingContext
from cpb_ai.training.config import (
    EarlyStoppingConfig,
    ValidationSplitConfig,
    early_stopping_config,
    select_hyperparameters,
)
from cpb_ai.training.data_splitting import ValidationSplitter
from cpb_ai.training.early_stopping import EarlyStopping
from cpb_ai.training.metrics import (
    classification_metrics,
    confusion_counts,
    evaluate_binary,
    mean_absolute_error,
)
from cpb_ai.types import Domain

# ======================================================================
# select_hyperparameters
# ======================================================================


class TestSelectHyperparameters:
    @pytest.mark.parametrize(
        ("count", "batch_size", "epochs"),
        [
            (5, 8, 50),
            (50, 8, 50),
            (1000, 20, 50),
            (5000, 100, 50),
            (5001, 100, 10),
            (20000, 128, 10),
        ],
    )
    def test_adaptive_values(self, count: int, batch_size: int, epochs: int) -> None:
        hyper = select_hyperparameters(count)
        assert hyper.batch_size == batch_size
        assert hyper.epochs == epochs

    def test_fresh_learning_rate(self) -> None:
        assert select_hyperparameters(100).learning_rate == 0.01

    def test_warm_start_learning_rate(self) -> None:
        assert select_hyperparameters(100, warm_start=True).learning_rate == 0.005

    def test_settings_override(self) -> None:
        settings = TrainingSettings(small_dataset_epochs=7, min_batch_size=4)
        hyper = select_hyperparameters(10, settings)
        assert hyper.epochs == 7
        assert hyper.batch_size == 4

    def test_early_stopping_from_settings(self) -> None:
        config = early_stopping_config(TrainingSettings(patience=2, min_delta=0.1))
        assert config.patience == 2
        assert config.min_delta == 0.1
        assert config.metric == "val_loss"


# ======================================================================
# Metrics
# ======================================================================


class TestMetrics:
    def test_classification_metrics(self) -> None:
        result = classification_metrics(tp=3, fp=1, fn=1, tn=5)
        assert result.precision == pytest.approx(0.75)
        assert result.recall == pytest.approx(0.75)
        assert result.f1 == pytest.approx(0.75)

    def test_zero_division(self) -> None:
        result = classification_metrics(tp=0, fp=0, fn=0, tn=4)
        assert (result.precision, result.recall, result.f1) == (0.0, 0.0, 0.0)

    def test_confusion_counts(self) -> None:
        scores = np.array([0.9, 0.8, 0.2, 0.6, 0.1])
        labels = np.array([1, 0, 1, 1, 0])
        assert confusion_counts(scores, labels) == (2, 1, 1, 1)

    def test_threshold_is_strict(self) -> None:
        assert confusion_counts(np.array([0.5]), np.array([1.0])) == (0, 0, 1, 0)

    def test_length_mismatch(self) -> None:
        with pytest.raises(ValueError, match="mismatch"):
            confusion_counts(np.array([0.1, 0.2]), np.array([1.0]))

    def test_evaluate_binary(self) -> None:
        result = evaluate_binary(np.array([[0.9], [0.1]]), np.array([[1.0], [0.0]]))
        assert result.f1 == 1.0
        assert result.true_negatives == 1

    def test_mean_absolute_error(self) -> None:
        assert mean_absolute_error(np.array([1.0, 2.0]), np.array([2.0, 4.0])) == 1.5
        assert mean_absolute_error(np.array([]), np.array([])) == 0.0


# ======================================================================
# ValidationSplitter
# ======================================================================


class TestValidationSplitter:
    def test_stratified(self) -> None:
        labels = np.array([1, 0] * 10, dtype=np.float32)
        split = ValidationSplitter(ValidationSplitConfig(fraction=0.2)).split(20, labels)
        assert split.split_info["strategy"] == "stratified_holdout"
        assert len(split.val) == 4
        assert labels[split.val].sum() == 2

    def test_partition(self) -> None:
        split = ValidationSplitter(ValidationSplitConfig()).split(10)
        assert sorted([*split.train.tolist(), *split.val.tolist()]) == list(range(10))
        assert split.split_info["strategy"] == "holdout"

    def test_falls_back_when_class_too_small(self) -> None:
        labels = np.array([1, 0, 0, 0, 0, 0], dtype=np.float32)
        split = ValidationSplitter(ValidationSplitConfig(fraction=0.2)).split(6, labels)
        assert split.split_info["strategy"] == "holdout"
        assert len(split.train) + len(split.val) == 6

    def test_deterministic(self) -> None:
        splitter = ValidationSplitter(ValidationSplitConfig(random_seed=7))
        assert splitter.split(15).val.tolist() == splitter.split(15).val.tolist()


# ======================================================================
# EarlyStopping / callbacks
# ======================================================================


class TestEarlyStopping:
    def _context(self) -> TrainingContext:
        return TrainingContext(domain=Domain.TRANSFUSION, epoch_budget=10)

    def test_stops_after_patience(self) -> None:
        stopper = EarlyStopping(EarlyStoppingConfig(patience=2))
        ctx = self._context()
        for epoch, loss in enumerate([1.0, 0.8, 0.9, 0.85]):
            stopper.on_epoch_end(epoch, {"val_loss": loss}, ctx)
        assert stopper.should_stop()
        assert stopper.best_epoch == 1
        assert ctx.stop_requested

    def test_improvement_resets_counter(self) -> None:
        stopper = EarlyStopping(EarlyStoppingConfig(patience=2))
        ctx = self._context()
        for epoch, loss in enumerate([1.0, 1.1, 0.5, 0.6]):
            stopper.on_epoch_end(epoch, {"val_loss": loss}, ctx)
        assert not stopper.should_stop()
        assert stopper.epochs_without_improvement == 1

    def test_min_delta(self) -> None:
        stopper = EarlyStopping(EarlyStoppingConfig(patience=1, min_delta=0.1))
        ctx = self._context()
        stopper.on_epoch_end(0, {"val_loss": 1.0}, ctx)
        stopper.on_epoch_end(1, {"val_loss": 0.95}, ctx)
        assert stopper.stopped

    def test_disabled(self) -> None:
        stopper = EarlyStopping(EarlyStoppingConfig(enabled=False, patience=1))
        ctx = self._context()
        for epoch in range(5):
            stopper.on_epoch_end(epoch, {"val_loss": 1.0}, ctx)
        assert not stopper.should_stop()

    def test_missing_metric_ignored(self) -> None:
        stopper = EarlyStopping(EarlyStoppingConfig(patience=1))
        stopper.on_epoch_end(0, {"loss": 1.0}, self._context())
        assert stopper.best_value is None

    def test_percent_complete(self) -> None:
        ctx = TrainingContext(domain=Domain.PERFUSION, epoch_budget=12)
        assert ctx.percent_complete == 0
        ctx.epochs_run = 6
        assert ctx.percent_complete == 50
        ctx.epochs_run = 12
        assert ctx.percent_complete == 100

    def test_runner_records_metrics(self) -> None:
        recorder = MetricsRecorder()
        stopper = EarlyStopping(EarlyStoppingConfig(patience=1))
        runner = CallbackRunner([recorder, stopper])
        ctx = self._context()
        runner.on_train_start(ctx)
        runner.on_epoch_end(0, {"loss": 0.7, "val_loss": 0.6}, ctx)
        runner.on_epoch_end(1, {"loss": 0.5, "val_loss": 0.65}, ctx)
        runner.on_train_end(ctx)
        assert runner.should_stop()
        assert recorder.last == {"loss": 0.5, "val_loss": 0.65}
        assert recorder.series("val_loss") == [0.6, 0.65]
        assert ctx.epochs_run == 2
