# decisions/reward_engine/engine.py

import logging
from typing import Dict, NamedTuple, Optional

from django.db import transaction
from django.utils import timezone

from ..exceptions import UnknownAgentTypeError
from .aggregation import aggregate_reward
from .calculators import AGENT_CALCULATORS
from .components import ComponentGroup
from .context import EMPTY_CONTEXT, RewardContext, build_reward_context
from .schemas import AgentDecision, payload_from_model
from .weights import COMPONENT_TREES, load_weight_table

logger = logging.getLogger(__name__)


class RewardResult(NamedTuple):
    reward: float
    components: ComponentGroup


def score_decision(
    decision: AgentDecision,
    context: RewardContext = EMPTY_CONTEXT,
    weights: Optional[Dict[str, ComponentGroup]] = None,
) -> RewardResult:
    """
    Pure scoring step: typed decision + context + weight table -> (reward, components).

    A decision with neither feedback nor outcome metrics scores an all-zero
    tree and a reward of 0.
    """
    agent_type = decision.agent_type
    if weights is None:
        weights = load_weight_table()

    calculator = AGENT_CALCULATORS.get(agent_type)
    agent_weights = weights.get(agent_type)
    if calculator is None or agent_weights is None:
        raise UnknownAgentTypeError(f"No reward calculator or weights for agent type {agent_type!r}")

    if not decision.has_signal:
        return RewardResult(0.0, COMPONENT_TREES[agent_type]())

    components = calculator(decision, context)
    return RewardResult(aggregate_reward(components, agent_weights), components)


class RewardEngine:
    """
    Scores Decision rows and writes the result back.

    Every call is a full recompute from the row's current state, so running it
    again after a duplicate trigger is harmless.
    """

    def __init__(self, weights: Optional[Dict[str, ComponentGroup]] = None):
        self.weights = weights if weights is not None else load_weight_table()

    def compute(self, decision) -> RewardResult:
        if decision.agent_type not in AGENT_CALCULATORS:
            raise UnknownAgentTypeError(f"Decision {decision.pk} has unknown agent type {decision.agent_type!r}")

        payload = payload_from_model(decision)
        context = build_reward_context(decision, payload) if payload.has_signal else EMPTY_CONTEXT
        return score_decision(payload, context, self.weights)

    def recompute_and_store(self, decision_id) -> RewardResult:
        """
        Recompute one decision's reward and persist reward, components and timestamp.

        The row is read under a lock and written in the same transaction, so
        concurrent recomputes of one decision run one after the other and the
        last writer always scored the latest feedback and outcome.

        Raises:
            Decision.DoesNotExist: no decision with this id.
        """
        from ..models import Decision

        with transaction.atomic():
            decision = Decision.objects.select_for_update().get(pk=decision_id)
            result = self.compute(decision)

            # Only the reward columns are written, so a concurrent feedback or
            # outcome write is never clobbered.
            Decision.objects.filter(pk=decision_id).update(
                reward=result.reward,
                reward_components=result.components.to_json(),
                reward_computed_at=timezone.now(),
            )

        logger.info(f"Reward for {decision.agent_type} decision {decision_id}: {result.reward:.4f}")
        return result
