"""Feature schemas and extraction."""

from __future__ import annotations

from cpb_ai.features.extractor import (
    ExtractedBatch,
    FeatureExtractor,
    coerce_number,
    lookup,
    lookup_number,
)
from cpb_ai.features.schema import (
    DOMAIN_SCHEMAS,
    DomainSchema,
    FeatureSpec,
    LabelSpec,
    get_schema,
)

__all__ = [
    "DOMAIN_SCHEMAS",
    "DomainSchema",
    "ExtractedBatch",
    "FeatureExtractor",
    "FeatureSpec",
    "LabelSpec",
    "coerce_number",
    "get_schema",
    "lookup",
    "lookup_number",
]
