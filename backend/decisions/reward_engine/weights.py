# decisions/reward_engine/weights.py
"""
Reward weight tables.

The weight table is the single tunable surface for reward shaping. It is
kept apart from the calculators: calculators extract signals, this module
decides how much each signal is worth.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Type

from django.conf import settings

from ..choices import AgentType
from ..exceptions import UnknownAgentTypeError
from .components import (
    ComponentGroup,
    FilerComponents,
    LibrarianComponents,
    PrioritizerComponents,
    RetrieverComponents,
    StorerComponents,
)

logger = logging.getLogger(__name__)


COMPONENT_TREES: Dict[str, Type[ComponentGroup]] = {
    AgentType.FILER.value: FilerComponents,
    AgentType.LIBRARIAN.value: LibrarianComponents,
    AgentType.PRIORITIZER.value: PrioritizerComponents,
    AgentType.STORER.value: StorerComponents,
    AgentType.RETRIEVER.value: RetrieverComponents,
}


DEFAULT_REWARD_WEIGHTS: Dict[str, ComponentGroup] = {
    AgentType.FILER.value: FilerComponents.model_validate({
        "immediate": {
            "userFeedback": 1.0,  # Primary signal
            "confidenceCalibration": 0.1,
        },
        "delayed": {
            "completionSuccess": 0.5,
            "blockageAvoidance": 0.3,
            "reworkPenalty": 0.2,
            "timeEfficiency": 0.3,
        },
        "strategic": {
            "goalAlignment": 0.4,
            "opportunityCost": 0.2,
        },
    }),
    AgentType.LIBRARIAN.value: LibrarianComponents.model_validate({
        "immediate": {
            "userFeedback": 1.0,
        },
        "delayed": {
            "conflictPrevention": 2.0,  # prevents wasted work
            "falsePositivePenalty": 0.5,
            "missedIssuePenalty": 2.0,  # missed a critical issue
            "dependencyAccuracy": 0.5,
        },
    }),
    AgentType.PRIORITIZER.value: PrioritizerComponents.model_validate({
        "immediate": {
            "userAcceptance": 1.0,
        },
        "delayed": {
            "completionSuccess": 1.0,
            "timeEfficiency": 0.5,
            "strategicProgress": 0.8,  # advances goals
            "opportunityCost": 0.3,
        },
        "contextual": {
            "energyAlignment": 0.2,
            "flowMaintenance": 0.2,
        },
    }),
    AgentType.STORER.value: StorerComponents.model_validate({
        "immediate": {
            "userAcceptance": 1.0,
            "editDistance": 0.5,
        },
        "delayed": {
            "corpusCoherence": 0.7,
            "findability": 0.6,
            "duplicationPenalty": 0.4,
        },
    }),
    AgentType.RETRIEVER.value: RetrieverComponents.model_validate({
        "immediate": {
            "userAcceptance": 1.0,
            "editDistance": 0.5,
        },
        "accuracy": {
            "citationCorrectness": 0.8,
            "hallucinationPenalty": 2.0,  # breaks trust
            "completeness": 0.6,
        },
        "quality": {
            "coherence": 0.4,
            "styleAlignment": 0.3,
        },
    }),
}


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def build_weight_table(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, ComponentGroup]:
    """
    Default weights with per-agent overrides applied.

    Overrides use the camelCase component paths, e.g.
    {"FILER": {"delayed": {"timeEfficiency": 0.4}}}.

    Raises:
        UnknownAgentTypeError: an override names an agent type with no tree.
        pydantic.ValidationError: an override names a component that does not exist.
    """
    table = dict(DEFAULT_REWARD_WEIGHTS)

    for agent_type, agent_overrides in (overrides or {}).items():
        tree_class = COMPONENT_TREES.get(agent_type)
        if tree_class is None:
            raise UnknownAgentTypeError(f"No component tree for agent type {agent_type!r}")

        merged = _deep_merge(table[agent_type].to_json(), agent_overrides)
        table[agent_type] = tree_class.model_validate(merged)
        logger.info(f"Reward weights for {agent_type} overridden: {agent_overrides}")

    return table


def load_weight_table() -> Dict[str, ComponentGroup]:
    """Weight table for the running process (defaults + REWARD_WEIGHT_OVERRIDES)."""
    return build_weight_table(getattr(settings, "REWARD_WEIGHT_OVERRIDES", None))
