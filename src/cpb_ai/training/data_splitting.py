"""Validation splitting: stratified holdout with a random fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np
from sklearn.model_selection import train_test_split

if TYPE_CHECKING:
    from cpb_ai.training.config import ValidationSplitConfig

logger = logging.getLogger(__name__)


@dataclass
class SplitIndices:
    """Row indices of the training and validation partitions."""

    train: np.ndarray
    val: np.ndarray
    split_info: dict[str, Any] = field(default_factory=dict)


class ValidationSplitter:
    """Hold out a fixed fraction of a batch for validation.

    Binary labels are stratified when every class has enough members;
    otherwise the split is a seeded random holdout.
    """

    def __init__(self, config: ValidationSplitConfig) -> None:
        self._config = config

    def split(self, n: int, labels: np.ndarray | None = None) -> SplitIndices:
        indices = np.arange(n)
        if self._config.stratify and labels is not None:
            try:
                train_idx, val_idx = train_test_split(
                    indices,
                    test_size=self._config.fraction,
                    stratify=np.asarray(labels),
                    random_state=self._config.random_seed,
                )
                return SplitIndices(
                    train=np.sort(train_idx),
                    val=np.sort(val_idx),
                    split_info={
                        "strategy": "stratified_holdout",
                        "train_size": len(train_idx),
                        "val_size": len(val_idx),
                    },
                )
            except ValueError as e:
                logger.debug("Stratified split not possible (%s), using random holdout", e)

        train_idx, val_idx = train_test_split(
            indices,
            test_size=self._config.fraction,
            random_state=self._config.random_seed,
        )
        return SplitIndices(
            train=np.sort(train_idx),
            val=np.sort(val_idx),
            split_info={
                "strategy": "holdout",
                "train_size": len(train_idx),
                "val_size": len(val_idx),
            },
        )
