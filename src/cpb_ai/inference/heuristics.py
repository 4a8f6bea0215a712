"""Heuristic fallback: deterministic clinical rules per domain.

These rules produce a usable :class:`PredictionResult` with no trained
model at all.  Every function is pure: same input, same output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cpb_ai.features.extractor import lookup_number
from cpb_ai.features.schema import NESTED_FEATURE_PATHS
from cpb_ai.schemas import ComplicationRisk, PredictionResult
from cpb_ai.types import Domain, Provenance, Severity

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

HEURISTIC_CONFIDENCE = 0.85
FORMULA_CONFIDENCE = 0.8

RISK_HIGH = "Élevé"
RISK_MODERATE = "Modéré"
RISK_LOW = "Faible"

_SEVERITY_ORDER = {Severity.SUCCESS: 0, Severity.WARNING: 1, Severity.DESTRUCTIVE: 2}

# Keys accepted by the rules in addition to the model feature aliases.
HEMOGLOBIN_KEYS = ("hemoglobine", "hemoglobin", "hb", "hémoglobine")
HEMATOCRIT_KEYS = ("hematocrite", "hte", "hct", "hematocrit", "hématocrite")
POTASSIUM_KEYS = ("k", "potassium", "kaliemie", "kaliémie")
INPUT_TOTAL_KEYS = ("total_entrees", "totalentrees", "entrees", "inputs")
OUTPUT_TOTAL_KEYS = ("total_sorties", "totalsorties", "sorties", "outputs")


def number(
    record: Mapping[str, Any],
    keys: tuple[str, ...],
    default: float | None = None,
) -> float | None:
    """Numeric value for the first matching key, or *default*."""
    value = lookup_number(record, keys, NESTED_FEATURE_PATHS)
    return default if value is None else value


def escalate(current: Severity, candidate: Severity) -> Severity:
    return candidate if _SEVERITY_ORDER[candidate] > _SEVERITY_ORDER[current] else current


def severity_for_risk(level: str) -> Severity:
    if level == RISK_HIGH:
        return Severity.DESTRUCTIVE
    if level == RISK_MODERATE:
        return Severity.WARNING
    return Severity.SUCCESS


def risk_from_probability(probability: float) -> str:
    """Map a model probability to a risk band (> 0.7 high, > 0.3 moderate)."""
    if probability > 0.7:
        return RISK_HIGH
    if probability > 0.3:
        return RISK_MODERATE
    return RISK_LOW


# =============================================================================
# Transfusion / hematology
# =============================================================================


def hematology_risk(record: Mapping[str, Any]) -> PredictionResult:
    """Hb < 8 g/dL or Hct < 24 % is high risk; Hb < 10 g/dL is moderate."""
    hb = number(record, HEMOGLOBIN_KEYS)
    hct = number(record, HEMATOCRIT_KEYS)

    level = RISK_LOW
    message = "Paramètres hématologiques dans la norme."
    if (hb is not None and hb < 8) or (hct is not None and hct < 24):
        level = RISK_HIGH
        message = "Anémie sévère détectée. Risque transfusionnel immédiat."
    elif hb is not None and hb < 10:
        level = RISK_MODERATE
        message = "Anémie modérée. À surveiller."

    return PredictionResult(
        domain=Domain.TRANSFUSION,
        provenance=Provenance.HEURISTIC,
        status=level,
        severity=severity_for_risk(level),
        message=message,
        confidence=HEURISTIC_CONFIDENCE,
        details={"hemoglobine": hb, "hematocrite": hct},
    )


# =============================================================================
# Perfusion
# =============================================================================


def theoretical_flow(record: Mapping[str, Any]) -> float:
    bsa = number(record, ("bsa", "surfacecorporelle", "surface_corporelle"), 1.8)
    ci = number(record, ("target_ci", "indexcardiaquecible", "cardiac_index", "ci"), 2.4)
    return round(float(bsa) * float(ci), 2)


def perfusion_flow(record: Mapping[str, Any]) -> PredictionResult:
    """Target flow = body surface area × target cardiac index."""
    flow = theoretical_flow(record)
    return PredictionResult(
        domain=Domain.PERFUSION,
        provenance=Provenance.HEURISTIC,
        value=flow,
        status="theoretical",
        message=f"Débit théorique calculé : {flow:.2f} L/min.",
        confidence=FORMULA_CONFIDENCE,
        details={"target_flow_rate": flow},
    )


# =============================================================================
# Blood gas
# =============================================================================


def acid_base_status(ph: float, paco2: float, hco3: float) -> tuple[str, Severity]:
    """Classify acidosis/alkalosis and assess compensation."""
    if ph < 7.35:
        status = "Acidose"
        if paco2 > 45:
            status += " Respiratoire"
            if hco3 > 26:
                status += " Compensée"
        elif hco3 < 22:
            status += " Métabolique"
            if paco2 < 35:
                status += " Compensée"
        else:
            status += " Mixte (probable)"
        return status, Severity.DESTRUCTIVE
    if ph > 7.45:
        status = "Alcalose"
        if paco2 < 35:
            status += " Respiratoire"
        elif hco3 > 26:
            status += " Métabolique"
        return status, Severity.WARNING
    return "Normal", Severity.SUCCESS


def blood_gas_analysis(record: Mapping[str, Any]) -> PredictionResult:
    ph = number(record, ("ph",), 7.4)
    paco2 = number(record, ("paco2", "pco2"), 40.0)
    hco3 = number(record, ("hco3", "bicarbonate"), 24.0)
    pao2 = number(record, ("pao2", "po2"), 100.0)
    lactate = number(record, ("lactate", "lactates"))
    potassium = number(record, POTASSIUM_KEYS)

    status, severity = acid_base_status(ph, paco2, hco3)
    findings: list[str] = []
    recommendations: list[str] = []

    if pao2 < 60:
        findings.append("Hypoxémie sévère")
        severity = Severity.DESTRUCTIVE
    elif pao2 < 80:
        findings.append("Hypoxémie modérée")

    if lactate is not None and lactate > 2:
        findings.append(f"Hyperlactatémie ({lactate:g} mmol/L)")
        severity = escalate(severity, Severity.DESTRUCTIVE if lactate > 4 else Severity.WARNING)

    if potassium is not None:
        if potassium < 3.5:
            findings.append(f"Hypokaliémie ({potassium:g} mEq/L)")
            recommendations.append("Administrer du KCl.")
            severity = escalate(severity, Severity.WARNING)
        elif potassium > 5.5:
            findings.append(f"Hyperkaliémie ({potassium:g} mEq/L)")
            recommendations.append("Envisager une hémofiltration ou d'autres mesures correctives.")
            severity = escalate(severity, Severity.WARNING)

    if "Métabolique" in status and status.startswith("Acidose"):
        recommendations.insert(0, "Corriger au bicarbonate de sodium.")
    if "Respiratoire" in status:
        recommendations.insert(0, "Ajuster le balayage gazeux (sweep gas).")
    if not recommendations:
        recommendations.append("Maintenir la surveillance.")

    return PredictionResult(
        domain=Domain.BLOOD_GAS,
        provenance=Provenance.HEURISTIC,
        status=status,
        severity=severity,
        message=", ".join(findings) if findings else status,
        confidence=HEURISTIC_CONFIDENCE,
        details={"findings": findings, "recommendations": recommendations},
    )


# =============================================================================
# Fluid balance
# =============================================================================


def resolve_balance(record: Mapping[str, Any]) -> float:
    """Net balance in mL: explicit ``balance``, else inputs minus outputs."""
    explicit = number(record, ("balance", "bilan", "fluid_balance"))
    if explicit is not None:
        return explicit
    inputs = number(record, INPUT_TOTAL_KEYS, 0.0)
    outputs = number(record, OUTPUT_TOTAL_KEYS, 0.0)
    return float(inputs) - float(outputs)


def cpb_minutes(record: Mapping[str, Any]) -> float:
    return float(number(record, ("duree_cec", "dureececmin", "cpb_duration", "duree"), 0.0))


_BALANCE_SEVERITY = {
    "overload": Severity.WARNING,
    "positive": Severity.WARNING,
    "negative": Severity.WARNING,
    "alert": Severity.DESTRUCTIVE,
    "neutral": Severity.SUCCESS,
}


def balance_analysis(record: Mapping[str, Any]) -> PredictionResult:
    """Classify the net balance in ±150 / ±500 / ±1000 mL bands."""
    balance = resolve_balance(record)
    minutes = cpb_minutes(record)

    status = "neutral"
    message = "Bilan équilibré."
    if balance > 1000:
        status = "overload"
        message = "Surcharge volémique importante (> 1L). Envisager hémofiltration."
    elif balance > 500:
        status, message = "positive", "Bilan positif modéré. À surveiller."
    elif balance > 150:
        status, message = "neutral", "Bilan légèrement positif."
    elif balance < -1000:
        status = "alert"
        message = "Déficit volémique important. Risque de désamorçage ou bas débit."
    elif balance < -500:
        status, message = "negative", "Bilan négatif significatif. Vérifier le remplissage."
    elif balance < -150:
        status, message = "neutral", "Bilan légèrement négatif."

    if minutes > 120 and balance > 1500:
        status = "alert"
        message += " (Attention: CEC longue + surcharge)"

    return PredictionResult(
        domain=Domain.FLUID_BALANCE,
        provenance=Provenance.HEURISTIC,
        value=balance,
        status=status,
        severity=_BALANCE_SEVERITY[status],
        message=message,
        confidence=FORMULA_CONFIDENCE,
        details={"balance": balance, "duree_cec": minutes},
    )


# =============================================================================
# Complications (rule-based only)
# =============================================================================


def complication_risk(record: Mapping[str, Any]) -> ComplicationRisk:
    """``age×0.1 + euroscore×2 + cpb_minutes×0.05``, clamped to 0..100."""
    age = float(number(record, ("age",), 0.0))
    euroscore = float(number(record, ("euroscore",), 0.0))
    minutes = cpb_minutes(record)

    score = min(100.0, max(0.0, age * 0.1 + euroscore * 2 + minutes * 0.05))
    if score > 50:
        category = RISK_HIGH
    elif score > 20:
        category = RISK_MODERATE
    else:
        category = RISK_LOW

    return ComplicationRisk(
        score=round(score, 1),
        category=category,
        severity=severity_for_risk(category),
        message=(
            f"Score de risque calculé basé sur l'âge ({age:g}), l'EuroSCORE "
            f"({euroscore:g}) et la durée estimée de CEC."
        ),
    )


FALLBACKS: dict[Domain, Callable[[Mapping[str, Any]], PredictionResult]] = {
    Domain.TRANSFUSION: hematology_risk,
    Domain.PERFUSION: perfusion_flow,
    Domain.BLOOD_GAS: blood_gas_analysis,
    Domain.FLUID_BALANCE: balance_analysis,
}


def evaluate(domain: Domain, record: Mapping[str, Any]) -> PredictionResult:
    """Run the fallback rules of *domain*."""
    return FALLBACKS[domain](record)
