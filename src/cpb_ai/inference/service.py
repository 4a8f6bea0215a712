"""Inference Service: model prediction with a guaranteed heuristic fallback."""

from __future__ import annotations

import functools
import logging
import math
from typing import TYPE_CHECKING, Any

import numpy as np
import torch

from cpb_ai.exceptions import ArtifactIncompatibleError
from cpb_ai.features.extractor import FeatureExtractor
from cpb_ai.features.schema import DOMAIN_SCHEMAS, get_schema
from cpb_ai.inference import heuristics
from cpb_ai.observability import correlation_context
from cpb_ai.resources import BufferScope
from cpb_ai.schemas import PredictionResult
from cpb_ai.types import Domain, Provenance, Severity

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cpb_ai.features.schema import DomainSchema
    from cpb_ai.normalization import NormalizationStore
    from cpb_ai.registry import ModelRegistry
    from cpb_ai.schemas import ComplicationRisk

logger = logging.getLogger(__name__)

MODEL_CONFIDENCE = 0.92


class InferenceService:
    """Predict with the saved domain model, or fall back to rules.

    :meth:`predict` never raises for a known domain: any failure in the
    model path (no artifact, no normalization metadata, incompatible
    shapes, non-finite output) is logged at WARNING and answered by the
    domain's heuristic, tagged ``heuristic``.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        normalization: NormalizationStore,
    ) -> None:
        self._registry = registry
        self._normalization = normalization
        self._extractors = {d: FeatureExtractor(s) for d, s in DOMAIN_SCHEMAS.items()}

    async def predict(self, domain: Domain | str, raw: Mapping[str, Any]) -> PredictionResult:
        """Return a model-based or heuristic prediction for *raw*.

        Raises:
            UnknownDomainError: *domain* is not a registered domain.
        """
        schema = get_schema(domain)
        record = _prepare(schema.domain, raw if isinstance(raw, dict) else {})

        with correlation_context():
            try:
                value = await self._model_output(schema, record)
            except Exception as e:
                logger.warning(
                    "Model unavailable for %s (%s: %s), using heuristic",
                    schema.domain,
                    type(e).__name__,
                    e,
                )
                return heuristics.evaluate(schema.domain, record)

            logger.debug("Model output for %s: %.4f", schema.domain, value)
            return _decode(schema.domain, value, record)

    async def _model_output(self, schema: DomainSchema, record: dict[str, Any]) -> float:
        read_norm = functools.partial(self._normalization.read, schema.domain)
        async with self._registry.snapshot(schema.domain, read_norm) as (handle, norm):
            if norm.feature_names and norm.feature_names != schema.feature_names:
                raise ArtifactIncompatibleError(
                    f"Normalization metadata for {schema.domain} does not match its features",
                    details={"expected": schema.feature_names, "found": norm.feature_names},
                )
            with BufferScope(f"predict:{schema.domain}") as scope:
                vector = scope.track(
                    np.asarray([self._extractors[schema.domain].extract(record)], dtype=np.float32)
                )
                x = scope.track(
                    torch.from_numpy(self._normalization.apply_for_inference(vector, norm))
                )
                handle.network.eval()
                with torch.no_grad():
                    out = scope.track(handle.network(x))
                value = float(out.reshape(-1)[0].item())

        if not math.isfinite(value):
            raise ValueError(f"Model produced a non-finite output: {value}")
        return value

    # ------------------------------------------------------------------
    # Domain helpers
    # ------------------------------------------------------------------

    async def predict_hematology_risk(self, data: Mapping[str, Any]) -> PredictionResult:
        return await self.predict(Domain.TRANSFUSION, data)

    async def optimize_perfusion(self, data: Mapping[str, Any]) -> PredictionResult:
        return await self.predict(Domain.PERFUSION, data)

    async def analyze_blood_gas(self, data: Mapping[str, Any]) -> PredictionResult:
        return await self.predict(Domain.BLOOD_GAS, data)

    async def analyze_balance(self, data: Mapping[str, Any]) -> PredictionResult:
        return await self.predict(Domain.FLUID_BALANCE, data)

    @staticmethod
    def predict_complications(data: Mapping[str, Any]) -> ComplicationRisk:
        return heuristics.complication_risk(data)


def _prepare(domain: Domain, raw: dict[str, Any]) -> dict[str, Any]:
    if domain == Domain.FLUID_BALANCE:
        return {**raw, "balance": heuristics.resolve_balance(raw)}
    return dict(raw)


def _decode(domain: Domain, value: float, record: Mapping[str, Any]) -> PredictionResult:
    """Interpret a raw model output for *domain*."""
    if domain == Domain.TRANSFUSION:
        level = heuristics.risk_from_probability(value)
        message = (
            "Risque transfusionnel majeur identifié par l'IA locale."
            if level == heuristics.RISK_HIGH
            else "Risque transfusionnel maîtrisé selon vos protocoles."
        )
        return PredictionResult(
            domain=domain,
            provenance=Provenance.MODEL,
            value=value,
            status=level,
            severity=heuristics.severity_for_risk(level),
            message=message,
            confidence=MODEL_CONFIDENCE,
        )

    if domain == Domain.PERFUSION:
        flow = round(value, 2)
        return PredictionResult(
            domain=domain,
            provenance=Provenance.MODEL,
            value=flow,
            status="optimized",
            message=f"Cible optimisée par IA locale ({flow:.2f} L/min) basée sur vos protocoles.",
            confidence=MODEL_CONFIDENCE,
            details={
                "target_flow_rate": flow,
                "theoretical_flow_rate": heuristics.theoretical_flow(record),
            },
        )

    confidence = max(value, 1.0 - value)
    if domain == Domain.BLOOD_GAS:
        return _blood_gas_with_rules(value, confidence, record)

    balance = heuristics.resolve_balance(record)
    hemofiltration = value > 0.5
    return PredictionResult(
        domain=domain,
        provenance=Provenance.MODEL,
        value=value,
        status="overload" if hemofiltration else "neutral",
        severity=Severity.WARNING if hemofiltration else Severity.SUCCESS,
        message=(
            "L'IA locale suggère une hémofiltration (basée sur vos protocoles)."
            if hemofiltration
            else "Bilan équilibré."
        ),
        confidence=confidence,
        details={"balance": balance},
    )


def _blood_gas_with_rules(
    value: float, confidence: float, record: Mapping[str, Any]
) -> PredictionResult:
    """Model disturbance probability, with the rule-based reading of the gas.

    The acid-base classification, findings and recommendations always come
    from the rules.  Severity is the higher of the model's and the rules'.
    """
    rules = heuristics.blood_gas_analysis(record)
    abnormal = value > 0.5
    severity = heuristics.escalate(
        rules.severity, Severity.WARNING if abnormal else Severity.SUCCESS
    )

    status = rules.status
    if status == "Normal" and abnormal:
        status = "Trouble acido-basique probable"

    findings = rules.details.get("findings", [])
    if findings:
        message = rules.message
    elif abnormal:
        message = "L'IA locale détecte un trouble acido-basique probable."
    else:
        message = "Gaz du sang conformes à vos protocoles."

    return PredictionResult(
        domain=Domain.BLOOD_GAS,
        provenance=Provenance.MODEL,
        value=value,
        status=status,
        severity=severity,
        message=message,
        confidence=confidence,
        details={**rules.details, "disturbance_probability": round(value, 4)},
    )
