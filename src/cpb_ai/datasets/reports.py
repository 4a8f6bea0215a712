"""Training records derived from stored CPB reports, and the baseline set."""

from __future__ import annotations

import logging
from typing import Any

from cpb_ai.features.extractor import coerce_number

logger = logging.getLogger(__name__)

BLOOD_PRODUCT_TERMS: tuple[str, ...] = ("culot", "cgr", "pfc", "u.p", "concentration")

# (poids, taille, age, hematocrite, transfusion)
_BASELINE_ROWS: tuple[tuple[int, int, int, int, int], ...] = (
    (70, 170, 75, 18, 1),
    (85, 180, 45, 35, 0),
    (60, 160, 80, 21, 1),
    (95, 185, 50, 38, 0),
    (75, 175, 68, 22, 1),
    (50, 155, 72, 24, 1),
    (80, 170, 60, 30, 0),
)

CLINICAL_BASELINE: list[dict[str, Any]] = [
    {
        "features": {"poids": poids, "taille": taille, "age": age, "hematocrite": hct},
        "labels": {"transfusion": label},
    }
    for poids, taille, age, hct, label in _BASELINE_ROWS
]


def parse_duration(value: Any) -> float:
    """Parse a CPB duration given in minutes or as ``HH:MM``. Unknown → 0."""
    if value is None:
        return 0.0
    number = coerce_number(value)
    if number is not None:
        return number
    text = str(value).strip()
    if ":" in text:
        hours, _, minutes = text.partition(":")
        h, m = coerce_number(hours), coerce_number(minutes)
        if h is not None and m is not None:
            return h * 60 + m
    return 0.0


def _received_blood(report: dict[str, Any]) -> bool:
    drugs = report.get("autres_drogues") or []
    for drug in drugs:
        if not isinstance(drug, dict):
            continue
        name = str(drug.get("nom") or "").lower()
        if any(term in name for term in BLOOD_PRODUCT_TERMS):
            return True
    return False


def records_from_reports(reports: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert CPB report dicts into transfusion training records.

    Reports missing weight, height, age, hemoglobin or hematocrit are
    skipped.  ``transfusion`` is 1 when any drug entry names a blood
    product; ``complications`` is 1 when the observations mention one.
    """
    records: list[dict[str, Any]] = []
    for report in reports:
        required = [report.get(k) for k in ("poids", "taille", "age", "hb", "hte")]
        values = [coerce_number(v) for v in required]
        if any(v is None or v == 0 for v in values):
            continue
        poids, taille, age, hb, hte = values

        observations = str(report.get("observations") or "").lower()
        records.append(
            {
                "features": {
                    "poids": poids,
                    "taille": taille,
                    "age": age,
                    "hematocrite": hte,
                    "hemoglobine": hb,
                    "duree_cec": parse_duration(report.get("duree_cec")),
                },
                "labels": {
                    "transfusion": 1 if _received_blood(report) else 0,
                    "complications": 1 if "complication" in observations else 0,
                },
            }
        )

    logger.info("Derived %d training record(s) from %d report(s)", len(records), len(reports))
    return records
