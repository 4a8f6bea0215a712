"""Dataset routing: locate the record array and pick the matching domain."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cpb_ai.exceptions import DatasetFormatError
from cpb_ai.features.extractor import record_keys
from cpb_ai.features.schema import DOMAIN_SCHEMAS

if TYPE_CHECKING:
    from cpb_ai.features.schema import DomainSchema
    from cpb_ai.types import Domain

logger = logging.getLogger(__name__)

WRAPPER_KEYS: tuple[str, ...] = ("data", "records", "items", "rows", "dataset")


@dataclass
class RoutedDataset:
    """Records located in an upload and the domain they belong to."""

    domain: Domain
    records: list[dict[str, Any]]
    matched_markers: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


class DatasetRouter:
    """Inspect an uploaded structure and dispatch it to a domain.

    Accepts a bare list of records, an object wrapping the list under a
    common key (``data``, ``records``, ``items``...), or any object whose
    first list-valued property holds the records.
    """

    def __init__(self, schemas: dict[Domain, DomainSchema] | None = None) -> None:
        self._schemas = schemas or DOMAIN_SCHEMAS

    def route(self, payload: Any) -> RoutedDataset:
        """Locate the records in *payload* and classify them by domain."""
        records = self.locate_records(payload)
        domain, matched = self.detect_domain(records[0])
        logger.info(
            "Routed dataset of %d record(s) to %s (markers=%s)",
            len(records),
            domain,
            ",".join(matched),
        )
        return RoutedDataset(domain=domain, records=records, matched_markers=matched)

    @staticmethod
    def locate_records(payload: Any) -> list[dict[str, Any]]:
        """Return the list of record objects held by *payload*."""
        candidate: Any = None
        if isinstance(payload, list):
            candidate = payload
        elif isinstance(payload, dict):
            for key in WRAPPER_KEYS:
                if isinstance(payload.get(key), list):
                    candidate = payload[key]
                    break
            else:
                candidate = next(
                    (value for value in payload.values() if isinstance(value, list)),
                    None,
                )

        if candidate is None:
            found = sorted(payload) if isinstance(payload, dict) else []
            raise DatasetFormatError(
                "Unrecognized dataset format: expected a JSON array of records or an "
                "object containing one",
                keys=[str(k) for k in found],
            )

        records = [item for item in candidate if isinstance(item, dict)]
        if not records:
            raise DatasetFormatError(
                "Dataset contains no record objects",
                details={"length": len(candidate)},
            )
        return records

    def detect_domain(self, record: dict[str, Any]) -> tuple[Domain, list[str]]:
        """Classify *record* by the domain whose marker keys it contains most.

        Ties are broken by schema declaration order.
        """
        keys = record_keys(record)
        key_set = set(keys)

        best: Domain | None = None
        best_matched: list[str] = []
        for domain, schema in self._schemas.items():
            matched = sorted(key_set & schema.markers)
            if len(matched) > len(best_matched):
                best, best_matched = domain, matched

        if best is None:
            raise DatasetFormatError(
                "No prediction domain matches the dataset. Keys found: "
                + (", ".join(keys) if keys else "(none)"),
                keys=keys,
            )
        return best, best_matched
