# decisions/recorder.py
"""
Decision ledger operations.

Every write is a field-level UPDATE on the columns it owns, so feedback,
outcome and reward writes to the same row never overwrite each other.
Feedback and outcome writes trigger a full reward recompute afterwards,
whichever of them lands last produces the final reward.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from django.db import transaction
from django.utils import timezone

from .choices import CORRECTING_FEEDBACK, AgentType, Feedback
from .exceptions import DecisionError, FeedbackAlreadyRecordedError, ImmutableFieldError, UnknownAgentTypeError
from .models import Decision
from .reward_engine.engine import RewardEngine
from .reward_engine.schemas import OutcomeMetrics

logger = logging.getLogger(__name__)

# Fixed at creation
IMMUTABLE_FIELDS = frozenset({"id", "pk", "agent_type", "model_version", "user", "user_id", "created_at"})


def get_model_version(model_name: str) -> str:
    """Version tag for a model: "<model>-YYYYMMDD"."""
    return f"{model_name}-{timezone.now().strftime('%Y%m%d')}"


def record_decision(
    agent_type: str,
    state: Dict[str, Any],
    action: Dict[str, Any],
    user_id: int,
    model_version: str,
    item_id: Optional[int] = None,
    opus_id: Optional[int] = None,
    confidence: Optional[float] = None,
    reasoning: Optional[str] = None,
    next_state: Optional[Dict[str, Any]] = None,
    alternative_actions: Optional[Any] = None,
    is_training_data: bool = True,
    is_validation_data: bool = False,
) -> Decision:
    """Log one agent decision. Only the identifying fields are required."""
    if agent_type not in AgentType.values:
        raise UnknownAgentTypeError(f"Unknown agent type {agent_type!r}")
    if state is None or action is None:
        raise DecisionError("A decision needs both a state and an action")
    if not user_id or not model_version:
        raise DecisionError("A decision needs a user and a model version")

    decision = Decision.objects.create(
        agent_type=agent_type,
        state=state,
        action=action,
        user_id=user_id,
        model_version=model_version,
        item_id=item_id,
        opus_id=opus_id,
        confidence=confidence,
        reasoning=reasoning,
        next_state=next_state,
        alternative_actions=alternative_actions,
        is_training_data=is_training_data,
        is_validation_data=is_validation_data,
    )
    logger.info(f"Recorded {agent_type} decision {decision.id} ({model_version})")
    return decision


def update_decision(decision_id, **patch) -> Decision:
    """
    Atomically set the given fields on one decision.

    Raises:
        ImmutableFieldError: the patch touches agent_type, model_version or another fixed field.
        Decision.DoesNotExist: no decision with this id.
    """
    immutable = IMMUTABLE_FIELDS.intersection(patch)
    if immutable:
        raise ImmutableFieldError(f"Cannot change {', '.join(sorted(immutable))} of decision {decision_id}")

    if patch and not Decision.objects.filter(pk=decision_id).update(**patch):
        raise Decision.DoesNotExist(f"Decision {decision_id} does not exist")
    return Decision.objects.get(pk=decision_id)


def get_decision(decision_id) -> Decision:
    return Decision.objects.select_related("item").get(pk=decision_id)


def find_decisions(
    user_id: Optional[int] = None,
    agent_type: Optional[str] = None,
    item_id: Optional[int] = None,
    has_feedback: Optional[bool] = None,
    has_reward: Optional[bool] = None,
    limit: Optional[int] = None,
):
    qs = Decision.objects.all()
    if user_id is not None:
        qs = qs.filter(user_id=user_id)
    if agent_type:
        qs = qs.for_agent(agent_type)
    if item_id is not None:
        qs = qs.filter(item_id=item_id)
    if has_feedback is not None:
        qs = qs.filter(user_feedback__isnull=not has_feedback)
    if has_reward is not None:
        qs = qs.filter(reward__isnull=not has_reward)
    if limit:
        qs = qs[:limit]
    return qs


def record_feedback(
    decision_id,
    feedback: str,
    correction: Optional[Dict[str, Any]] = None,
    recompute: bool = True,
) -> Decision:
    """
    Attach the human's verdict to a decision, then recompute its reward.

    Feedback is set at most once. The correction is only kept for
    CORRECTED and OVERRIDDEN.

    Raises:
        FeedbackAlreadyRecordedError: the decision already has feedback.
        Decision.DoesNotExist: no decision with this id.
    """
    if feedback not in Feedback.values:
        raise DecisionError(f"Unknown feedback {feedback!r}")

    updated = Decision.objects.filter(pk=decision_id, user_feedback__isnull=True).update(
        user_feedback=feedback,
        user_correction=correction if feedback in CORRECTING_FEEDBACK else None,
        feedback_at=timezone.now(),
    )
    if not updated:
        if Decision.objects.filter(pk=decision_id).exists():
            raise FeedbackAlreadyRecordedError(f"Decision {decision_id} already has feedback")
        raise Decision.DoesNotExist(f"Decision {decision_id} does not exist")

    logger.info(f"Feedback {feedback} recorded for decision {decision_id}")

    if recompute:
        RewardEngine().recompute_and_store(decision_id)
    return Decision.objects.get(pk=decision_id)


def record_outcome(decision_id, metrics: Mapping[str, Any], recompute: bool = True) -> Decision:
    """
    Merge observed outcome metrics into a decision, then recompute its reward.

    Keys may be camelCase or snake_case; they are stored camelCase. Existing
    metrics not named in the call are kept.

    Raises:
        pydantic.ValidationError: a known metric has a value of the wrong type.
        Decision.DoesNotExist: no decision with this id.
    """
    normalized = OutcomeMetrics.model_validate(dict(metrics)).to_json()

    with transaction.atomic():
        current = (
            Decision.objects.select_for_update()
            .values_list("outcome_metrics", flat=True)
            .get(pk=decision_id)
        )
        merged = {**(current or {}), **normalized}
        Decision.objects.filter(pk=decision_id).update(
            outcome_metrics=merged,
            outcome_observed_at=timezone.now(),
        )

    logger.info(f"Outcome recorded for decision {decision_id}: {sorted(normalized)}")

    if recompute:
        RewardEngine().recompute_and_store(decision_id)
    return Decision.objects.get(pk=decision_id)
