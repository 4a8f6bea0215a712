"""Declarative per-domain feature schemas.

Each domain lists its features in model-input order together with the
aliases accepted in raw records, the default substituted for missing
values and the sub-objects searched one level deep.  The same schema
drives feature extraction, label resolution and dataset routing.
"""

from __future__ import annotations

from dataclasses import dataclass

from cpb_ai.exceptions import UnknownDomainError
from cpb_ai.schemas import LayerSpec
from cpb_ai.types import Domain, TaskKind

NESTED_FEATURE_PATHS: tuple[str, ...] = ("features", "parameters", "data")
NESTED_LABEL_PATHS: tuple[str, ...] = ("labels",)

YES_VALUES: tuple[str, ...] = ("yes", "oui", "true")
NO_VALUES: tuple[str, ...] = ("no", "non", "false")


@dataclass(frozen=True)
class FeatureSpec:
    """One model input: canonical name, accepted aliases, fallback value."""

    name: str
    aliases: tuple[str, ...] = ()
    default: float = 0.0
    nested_paths: tuple[str, ...] = NESTED_FEATURE_PATHS

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


@dataclass(frozen=True)
class LabelSpec:
    """Target column.

    String labels in ``positive_values`` map to 1 and those in
    ``negative_values`` to 0.  A ``categorical`` label treats any other
    non-empty string as 0; otherwise an unreadable string means the record
    has no label.
    """

    name: str
    aliases: tuple[str, ...] = ()
    positive_values: tuple[str, ...] = ()
    negative_values: tuple[str, ...] = ()
    categorical: bool = False
    nested_paths: tuple[str, ...] = NESTED_LABEL_PATHS

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


@dataclass(frozen=True)
class DomainSchema:
    """Everything the engine needs to know about one prediction domain."""

    domain: Domain
    task: TaskKind
    features: tuple[FeatureSpec, ...]
    label: LabelSpec
    markers: frozenset[str]
    hidden_units: int = 8
    min_records: int = 5
    description: str = ""

    @property
    def feature_names(self) -> list[str]:
        return [f.name for f in self.features]

    @property
    def defaults(self) -> list[float]:
        return [f.default for f in self.features]

    @property
    def input_size(self) -> int:
        return len(self.features)

    def architecture(self) -> list[LayerSpec]:
        """Dense hidden layer followed by the task-specific output layer."""
        output = "sigmoid" if self.task == TaskKind.BINARY else "linear"
        return [
            LayerSpec(units=self.hidden_units, activation="relu"),
            LayerSpec(units=1, activation=output),
        ]


# =============================================================================
# Built-in domains
# =============================================================================

TRANSFUSION = DomainSchema(
    domain=Domain.TRANSFUSION,
    task=TaskKind.BINARY,
    features=(
        FeatureSpec("poids", ("weight", "masse", "weight_kg"), 70.0),
        FeatureSpec("taille", ("height", "height_cm"), 170.0),
        FeatureSpec("age", ("age_years", "âge"), 60.0),
        FeatureSpec("hematocrite", ("hte", "hct", "hematocrit", "hématocrite"), 30.0),
    ),
    label=LabelSpec(
        "transfusion",
        ("transfused", "needs_transfusion"),
        positive_values=YES_VALUES,
        negative_values=NO_VALUES,
    ),
    markers=frozenset({"poids", "age", "sexe", "taille", "hematocrite", "hte", "weight", "sex"}),
    description="Probability that the patient will need a blood transfusion.",
)

PERFUSION = DomainSchema(
    domain=Domain.PERFUSION,
    task=TaskKind.REGRESSION,
    features=(
        FeatureSpec("bsa", ("surfacecorporelle", "surface_corporelle", "body_surface_area"), 1.8),
        FeatureSpec("target_ci", ("indexcardiaquecible", "cardiac_index", "ci"), 2.4),
        FeatureSpec("temperature", ("temp", "température"), 36.0),
    ),
    label=LabelSpec("target_flow", ("targetflowrate", "debit", "flow")),
    markers=frozenset({"bsa", "target_ci", "surfacecorporelle", "indexcardiaquecible"}),
    hidden_units=10,
    description="Target pump flow in L/min.",
)

BLOOD_GAS = DomainSchema(
    domain=Domain.BLOOD_GAS,
    task=TaskKind.BINARY,
    features=(
        FeatureSpec("ph", (), 7.4),
        FeatureSpec("paco2", ("pco2",), 40.0),
        FeatureSpec("hco3", ("bicarbonate",), 24.0),
        FeatureSpec("pao2", ("po2",), 100.0),
        FeatureSpec("lactate", ("lactates",), 1.0),
    ),
    label=LabelSpec(
        "disturbance",
        ("abnormal", "anomalie", "trouble"),
        positive_values=YES_VALUES,
        negative_values=NO_VALUES,
    ),
    markers=frozenset({"ph", "pco2", "paco2", "lactate", "hco3", "pao2"}),
    description="Probability of an acid-base disturbance.",
)

FLUID_BALANCE = DomainSchema(
    domain=Domain.FLUID_BALANCE,
    task=TaskKind.BINARY,
    features=(
        FeatureSpec("balance", ("bilan", "fluid_balance"), 0.0),
        FeatureSpec("duree_cec", ("dureececmin", "cpb_duration", "duree"), 0.0),
    ),
    label=LabelSpec(
        "action",
        ("suggested_action",),
        positive_values=("hemofiltration", "hémofiltration"),
        categorical=True,
    ),
    markers=frozenset({"balance", "bilan", "duree_cec", "action"}),
    description="Probability that hemofiltration is the appropriate action.",
)

# Declaration order breaks ties when routing.
DOMAIN_SCHEMAS: dict[Domain, DomainSchema] = {
    schema.domain: schema for schema in (BLOOD_GAS, TRANSFUSION, PERFUSION, FLUID_BALANCE)
}


def get_schema(domain: Domain | str) -> DomainSchema:
    """Return the schema for *domain* or raise :exc:`UnknownDomainError`."""
    try:
        return DOMAIN_SCHEMAS[Domain(domain)]
    except (KeyError, ValueError):
        raise UnknownDomainError(
            f"Unknown domain '{domain}'",
            details={"available": [d.value for d in DOMAIN_SCHEMAS]},
        ) from None
