# decisions/export.py
"""
Training export: one chat-format record per decision, serialized as JSONL.

Each record is {"messages": [...], "reward": float, "metadata": {...}}.
metadata.rewardComponents holds the breakdown the reward was aggregated
from, so a consumer can re-derive the reward with the weight table.
"""

import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from django.core.serializers.json import DjangoJSONEncoder

from items.filer import FILER_SYSTEM_PROMPT

from .choices import AgentType

logger = logging.getLogger(__name__)

PRIORITIZER_SYSTEM_PROMPT = "You are the Prioritizer AI. Select the next Item to work on."
GENERIC_SYSTEM_PROMPT = "You are the {agent_type} AI agent."

DEFAULT_MIN_REWARD = -2.0
DEFAULT_LIMIT = 1000
DEFAULT_ORDERING = "-created_at"
ALLOWED_ORDERINGS = ("-created_at", "created_at", "-reward", "reward")


def _dumps(value: Any) -> str:
    return json.dumps(value, cls=DjangoJSONEncoder)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def build_messages(decision) -> List[Dict[str, str]]:
    """Role-tagged conversation for one decision: system prompt, state, action."""
    action = decision.action if isinstance(decision.action, dict) else {"action": decision.action}

    if decision.agent_type == AgentType.FILER:
        system_prompt = FILER_SYSTEM_PROMPT.strip()
        answer = {**action, "reasoning": decision.reasoning, "confidence": decision.confidence}
    elif decision.agent_type == AgentType.PRIORITIZER:
        system_prompt = PRIORITIZER_SYSTEM_PROMPT
        answer = {
            "recommended_item_id": action.get("recommended_item_id", action.get("recommendedItemId")),
            "reasoning": decision.reasoning,
            "confidence": decision.confidence,
        }
    else:
        system_prompt = GENERIC_SYSTEM_PROMPT.format(agent_type=decision.agent_type)
        answer = {**action, "reasoning": decision.reasoning}

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": _dumps(decision.state)},
        {"role": "assistant", "content": _dumps(answer)},
    ]


def build_training_record(decision) -> Dict[str, Any]:
    return {
        "messages": build_messages(decision),
        "reward": decision.reward if decision.reward is not None else 0.0,
        "metadata": {
            "decisionId": str(decision.id),
            "agentType": decision.agent_type,
            "itemId": decision.item_id,
            "opusId": decision.opus_id,
            "userFeedback": decision.user_feedback,
            "userCorrection": decision.user_correction,
            "outcomeMetrics": decision.outcome_metrics,
            "rewardComponents": decision.reward_components,
            "createdAt": _iso(decision.created_at),
            "rewardComputedAt": _iso(decision.reward_computed_at),
        },
    }


def iter_jsonl(decisions: Iterable) -> Iterator[str]:
    """Yield one newline-terminated JSON line per decision."""
    count = 0
    for decision in decisions:
        count += 1
        yield _dumps(build_training_record(decision)) + "\n"
    logger.info(f"Training export wrote {count} records")
