"""Dense network construction from an architecture description."""

from __future__ import annotations

from typing import TYPE_CHECKING

from torch import nn

if TYPE_CHECKING:
    from cpb_ai.schemas import LayerSpec

_ACTIVATIONS: dict[str, type[nn.Module]] = {
    "relu": nn.ReLU,
    "sigmoid": nn.Sigmoid,
}


def build_network(input_size: int, architecture: list[LayerSpec]) -> nn.Sequential:
    """Build a feed-forward network with freshly initialized weights.

    Each :class:`LayerSpec` becomes a ``Linear`` layer optionally followed
    by its activation; ``linear`` adds no activation module.
    """
    if input_size < 1:
        raise ValueError(f"input_size must be >= 1, got {input_size}")
    if not architecture:
        raise ValueError("architecture must contain at least one layer")

    layers: list[nn.Module] = []
    in_features = input_size
    for spec in architecture:
        layers.append(nn.Linear(in_features, spec.units))
        activation = _ACTIVATIONS.get(spec.activation)
        if activation is not None:
            layers.append(activation())
        in_features = spec.units
    return nn.Sequential(*layers)
