# decisions/reward_engine/context.py

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from django.conf import settings
from pydantic import BaseModel, ConfigDict, Field

from .schemas import payload_from_model

logger = logging.getLogger(__name__)

DEFAULT_STRATEGIC_LABELS = ["Job 1 (Income)", "Job 2 (Authority)"]
DEFAULT_WINDOW_DAYS = 7


class StrategicFocus(BaseModel):
    """
    Completion counts of the competing strategic labels over a trailing window.

    The dominant label is the one with the most completions; ties go to the
    label listed first.
    """

    model_config = ConfigDict(frozen=True)

    labels: List[str]
    counts: Dict[str, int] = Field(default_factory=dict)

    @property
    def dominant_label(self) -> Optional[str]:
        if not self.labels:
            return None
        return max(self.labels, key=lambda label: (self.counts.get(label, 0), -self.labels.index(label)))

    @classmethod
    def from_completed_labels(cls, labels: Sequence[str], completed: Iterable[Iterable[str]]) -> "StrategicFocus":
        counts: Counter = Counter()
        for item_labels in completed:
            if not isinstance(item_labels, (list, tuple)):
                continue
            for label in {label for label in item_labels if isinstance(label, str)}:
                if label in labels:
                    counts[label] += 1
        return cls(labels=list(labels), counts={label: counts.get(label, 0) for label in labels})


class RewardContext(BaseModel):
    """Auxiliary inputs a calculator may need beyond the decision itself."""

    model_config = ConfigDict(frozen=True)

    strategic_focus: Optional[StrategicFocus] = None


EMPTY_CONTEXT = RewardContext()


def strategic_labels() -> List[str]:
    return list(getattr(settings, "STRATEGIC_FOCUS_LABELS", DEFAULT_STRATEGIC_LABELS))


def focus_window_days() -> int:
    return int(getattr(settings, "STRATEGIC_FOCUS_WINDOW_DAYS", DEFAULT_WINDOW_DAYS))


def load_strategic_focus(user_id: int, as_of: datetime) -> StrategicFocus:
    """Count the user's DONE items per strategic label in the window ending at as_of."""
    # Imported here so the scoring modules stay importable without the app registry
    from items.choices import ItemStatus
    from items.models import Item

    labels = strategic_labels()
    window_start = as_of - timedelta(days=focus_window_days())

    completed = Item.objects.filter(
        user_id=user_id,
        status=ItemStatus.DONE,
        completed_at__gte=window_start,
        completed_at__lte=as_of,
    ).values_list('labels', flat=True)

    focus = StrategicFocus.from_completed_labels(labels, completed)
    logger.debug(f"Strategic focus for user {user_id} as of {as_of.isoformat()}: {focus.counts}")
    return focus


def build_reward_context(decision, payload=None) -> RewardContext:
    """
    Gather the auxiliary context for one Decision row.

    Only Filer decisions tied to an item whose action carries a strategic
    label need it. The window is anchored at the decision's creation time so
    recomputing later yields the same focus.
    """
    from ..choices import AgentType

    if decision.agent_type != AgentType.FILER or not decision.item_id:
        return EMPTY_CONTEXT

    if payload is None:
        payload = payload_from_model(decision)
    if not set(payload.action.labels) & set(strategic_labels()):
        return EMPTY_CONTEXT

    return RewardContext(
        strategic_focus=load_strategic_focus(decision.user_id, decision.created_at)
    )
