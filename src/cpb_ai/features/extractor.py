"""Feature extraction: heterogeneous records to fixed-order numeric vectors."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from cpb_ai.types import TaskKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from cpb_ai.features.schema import DomainSchema, FeatureSpec, LabelSpec

logger = logging.getLogger(__name__)


@dataclass
class ExtractedBatch:
    """Feature matrix and label vector resolved from raw records."""

    features: np.ndarray
    labels: np.ndarray
    skipped: int = 0
    defaulted: dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return int(self.features.shape[0])


def coerce_number(value: Any) -> float | None:
    """Return *value* as a finite float, or None when it cannot be read as one.

    Accepts ints, floats and numeric strings (a decimal comma is accepted).
    Booleans map to 0/1.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _lowered(mapping: Mapping[str, Any]) -> dict[str, Any]:
    return {str(k).lower(): v for k, v in mapping.items()}


def iter_candidates(
    record: Mapping[str, Any], keys: Iterable[str], nested_paths: Iterable[str]
) -> Iterator[Any]:
    """Yield every non-null value stored under any of *keys*, case-insensitively.

    The record's top level is searched first, then each sub-object named
    in *nested_paths* (one level deep).  Within a scope, keys are tried in
    the given order.
    """
    keys = [k.lower() for k in keys]
    scopes = [_lowered(record)]
    top = scopes[0]
    for path in nested_paths:
        nested = top.get(path.lower())
        if isinstance(nested, dict):
            scopes.append(_lowered(nested))

    for scope in scopes:
        for key in keys:
            value = scope.get(key)
            if value is not None:
                yield value


def lookup(record: Mapping[str, Any], keys: Iterable[str], nested_paths: Iterable[str]) -> Any:
    """First value :func:`iter_candidates` finds, or None."""
    return next(iter_candidates(record, keys, nested_paths), None)


def lookup_number(
    record: Mapping[str, Any], keys: Iterable[str], nested_paths: Iterable[str]
) -> float | None:
    """First candidate that reads as a finite number.

    A blank or non-numeric entry does not hide a usable one stored under
    an alias or in a nested sub-object.
    """
    for value in iter_candidates(record, keys, nested_paths):
        number = coerce_number(value)
        if number is not None:
            return number
    return None


def record_keys(record: Mapping[str, Any]) -> list[str]:
    """Lower-cased keys of *record* plus those of any nested sub-object."""
    keys: list[str] = []
    for key, value in record.items():
        if isinstance(value, dict):
            keys.extend(str(k).lower() for k in value)
        else:
            keys.append(str(key).lower())
    return keys


class FeatureExtractor:
    """Convert raw records into the ordered feature vector of one domain.

    Missing, null or non-numeric values are replaced by the feature's
    default.  Extraction never raises for missing data.
    """

    def __init__(self, schema: DomainSchema) -> None:
        self._schema = schema

    @property
    def schema(self) -> DomainSchema:
        return self._schema

    def extract(self, record: Mapping[str, Any]) -> list[float]:
        """Return the feature vector for a single record."""
        return [self._feature_value(record, spec)[0] for spec in self._schema.features]

    def extract_label(self, record: Mapping[str, Any]) -> float | None:
        """Resolve the training label, or None when the record has none.

        A direct label field wins over a nested ``labels.<name>`` entry.
        """
        spec: LabelSpec = self._schema.label
        raw = lookup(record, spec.keys, spec.nested_paths)
        if raw is None:
            return None

        if isinstance(raw, str):
            normalized = raw.strip().lower()
            if normalized in spec.positive_values:
                return 1.0
            if normalized in spec.negative_values:
                return 0.0
            if coerce_number(normalized) is None:
                # Any other named category is a negative only for categorical labels.
                return 0.0 if spec.categorical and normalized else None

        number = coerce_number(raw)
        if number is None:
            return None
        if self._schema.task == TaskKind.BINARY:
            return 1.0 if number > 0.5 else 0.0
        return number

    def extract_batch(self, records: Iterable[Mapping[str, Any]]) -> ExtractedBatch:
        """Extract features and labels, skipping records without a label."""
        rows: list[list[float]] = []
        labels: list[float] = []
        skipped = 0
        defaulted: dict[str, int] = {}

        for record in records:
            if not isinstance(record, dict):
                skipped += 1
                continue
            label = self.extract_label(record)
            if label is None:
                skipped += 1
                continue
            row: list[float] = []
            for spec in self._schema.features:
                value, used_default = self._feature_value(record, spec)
                if used_default:
                    defaulted[spec.name] = defaulted.get(spec.name, 0) + 1
                row.append(value)
            rows.append(row)
            labels.append(label)

        if skipped:
            logger.info(
                "Skipped %d record(s) without a usable '%s' label",
                skipped,
                self._schema.label.name,
            )

        width = self._schema.input_size
        return ExtractedBatch(
            features=np.asarray(rows, dtype=np.float32).reshape(len(rows), width),
            labels=np.asarray(labels, dtype=np.float32),
            skipped=skipped,
            defaulted=defaulted,
        )

    @staticmethod
    def _feature_value(record: Mapping[str, Any], spec: FeatureSpec) -> tuple[float, bool]:
        number = lookup_number(record, spec.keys, spec.nested_paths)
        if number is None:
            return spec.default, True
        return number, False
