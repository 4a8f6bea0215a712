"""Post-training evaluation metrics, computed outside the epoch loop."""

from __future__ import annotations

import numpy as np

from cpb_ai.schemas import ClassificationMetrics

DECISION_THRESHOLD = 0.5


def confusion_counts(
    scores: np.ndarray,
    labels: np.ndarray,
    threshold: float = DECISION_THRESHOLD,
) -> tuple[int, int, int, int]:
    """Return ``(tp, fp, fn, tn)`` for ``score > threshold`` predictions."""
    predicted = np.asarray(scores).reshape(-1) > threshold
    actual = np.asarray(labels).reshape(-1) > threshold
    if predicted.shape != actual.shape:
        raise ValueError(f"scores/labels length mismatch: {predicted.shape} != {actual.shape}")
    tp = int(np.sum(predicted & actual))
    fp = int(np.sum(predicted & ~actual))
    fn = int(np.sum(~predicted & actual))
    tn = int(np.sum(~predicted & ~actual))
    return tp, fp, fn, tn


def classification_metrics(tp: int, fp: int, fn: int, tn: int) -> ClassificationMetrics:
    """Precision, recall and F1 from confusion-matrix counts. Undefined ratios are 0."""
    precision = tp / (tp + fp) if tp + fp else 0.0
    recall = tp / (tp + fn) if tp + fn else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
    return ClassificationMetrics(
        true_positives=tp,
        false_positives=fp,
        false_negatives=fn,
        true_negatives=tn,
        precision=precision,
        recall=recall,
        f1=f1,
    )


def evaluate_binary(scores: np.ndarray, labels: np.ndarray) -> ClassificationMetrics:
    return classification_metrics(*confusion_counts(scores, labels))


def mean_absolute_error(predictions: np.ndarray, targets: np.ndarray) -> float:
    diff = np.asarray(predictions, dtype=np.float64).reshape(-1) - np.asarray(
        targets, dtype=np.float64
    ).reshape(-1)
    return float(np.mean(np.abs(diff))) if diff.size else 0.0
