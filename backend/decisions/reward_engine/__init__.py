# decisions/reward_engine/__init__.py
"""
Reward Engine Package
=====================

Turns a logged agent decision into a scalar training reward.

Modules:
--------
- schemas: Typed per-agent views of a Decision row (tagged on agent_type)
- components: Per-agent reward component trees
- calculators: One pure component calculator per agent type
- weights: Default weight tables and settings overrides
- aggregation: Weighted sum over a component tree and the reward clamp
- context: Auxiliary inputs (strategic focus over recent completions)
- expected_time: Expected active time per swimlane and priority
- engine: Scoring entry points and persistence of the result
- celery_tasks: Outcome tracking and batch reward workers

Architecture:
-------------
Signal extraction and weighting are two separate layers. Calculators return a
component tree; the weight table is a tree of the same type. The reward is

    clamp(sum(weight * component), -REWARD_BOUND, REWARD_BOUND)

so reward shaping changes only the weight table, never the calculators.

Usage:
------
    from decisions.reward_engine import RewardEngine

    result = RewardEngine().recompute_and_store(decision_id)
    result.reward, result.components.to_json()
"""

from .aggregation import REWARD_BOUND, aggregate_reward, clamp_reward, weighted_sum
from .calculators import AGENT_CALCULATORS
from .context import EMPTY_CONTEXT, RewardContext, StrategicFocus
from .engine import RewardEngine, RewardResult, score_decision
from .schemas import AgentDecision, OutcomeMetrics, parse_decision
from .weights import DEFAULT_REWARD_WEIGHTS, build_weight_table, load_weight_table

__all__ = [
    # Core classes
    "RewardEngine",
    "RewardResult",
    "RewardContext",
    "StrategicFocus",
    "OutcomeMetrics",
    "AgentDecision",
    # Functions
    "score_decision",
    "parse_decision",
    "aggregate_reward",
    "weighted_sum",
    "clamp_reward",
    "build_weight_table",
    "load_weight_table",
    # Constants
    "AGENT_CALCULATORS",
    "DEFAULT_REWARD_WEIGHTS",
    "EMPTY_CONTEXT",
    "REWARD_BOUND",
]
