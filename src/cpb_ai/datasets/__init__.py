"""Dataset routing and report-derived training records."""

from __future__ import annotations

from cpb_ai.datasets.reports import CLINICAL_BASELINE, parse_duration, records_from_reports
from cpb_ai.datasets.router import DatasetRouter, RoutedDataset

__all__ = [
    "CLINICAL_BASELINE",
    "DatasetRouter",
    "RoutedDataset",
    "parse_duration",
    "records_from_reports",
]
