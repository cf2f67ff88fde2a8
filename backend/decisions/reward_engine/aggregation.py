# decisions/reward_engine/aggregation.py

from ..exceptions import WeightTableMismatchError
from .components import ComponentGroup

# Canonical reward range. Values beyond it are truncated, not compressed.
REWARD_BOUND = 5.0


def weighted_sum(components: ComponentGroup, weights: ComponentGroup) -> float:
    """
    Walk a component tree and its weight tree in lockstep and sum weight * leaf.

    Both trees must be instances of the same component class; a weight table
    for another agent is a configuration bug, not something to score around.
    """
    if type(components) is not type(weights):
        raise WeightTableMismatchError(
            f"Weights of type {type(weights).__name__} do not match components of type {type(components).__name__}"
        )

    total = 0.0
    for name in type(components).model_fields:
        value = getattr(components, name)
        weight = getattr(weights, name)
        if isinstance(value, ComponentGroup):
            total += weighted_sum(value, weight)
        else:
            total += float(value) * float(weight)
    return total


def clamp_reward(value: float, bound: float = REWARD_BOUND) -> float:
    return max(-bound, min(bound, value))


def aggregate_reward(components: ComponentGroup, weights: ComponentGroup) -> float:
    """Clamped weighted sum of a component tree."""
    return clamp_reward(weighted_sum(components, weights))
