# decisions/reward_engine/calculators.py
"""
Per-agent reward component calculators.

Each calculator is a pure function of the typed decision and its
RewardContext and returns that agent's component tree. No calculator reads
the database: anything beyond the decision row comes in through the context.
Absent outcome metrics always contribute 0.
"""

from typing import Callable, Dict, Optional

from items.choices import ItemStatus

from ..choices import AgentType, Feedback
from .components import (
    ComponentGroup,
    FilerComponents,
    FilerDelayed,
    FilerImmediate,
    FilerStrategic,
    LibrarianComponents,
    LibrarianDelayed,
    LibrarianImmediate,
    PrioritizerComponents,
    PrioritizerContextual,
    PrioritizerDelayed,
    PrioritizerImmediate,
    RetrieverAccuracy,
    RetrieverComponents,
    RetrieverImmediate,
    RetrieverQuality,
    StorerComponents,
    StorerDelayed,
    StorerImmediate,
)
from .context import RewardContext
from .expected_time import time_efficiency
from .schemas import (
    FilerDecision,
    LibrarianDecision,
    PrioritizerDecision,
    RetrieverDecision,
    StorerDecision,
)


# Immediate feedback values. OVERRIDDEN sits below CORRECTED: the human threw
# the action away instead of adjusting it.
STANDARD_FEEDBACK_VALUES = {
    Feedback.CONFIRMED: 1.0,
    Feedback.CORRECTED: -0.5,
    Feedback.OVERRIDDEN: -0.8,
    Feedback.IGNORED: 0.0,
}

# A wrong retrieval costs more than a wrong filing.
RETRIEVER_FEEDBACK_VALUES = {
    Feedback.CONFIRMED: 1.0,
    Feedback.CORRECTED: -1.0,
    Feedback.OVERRIDDEN: -1.0,
    Feedback.IGNORED: 0.0,
}

STRATEGIC_MATCH_BONUS = 0.5
REWORK_PENALTY_PER_CYCLE = 0.2
EDIT_DISTANCE_SCALE = 0.1


def feedback_value(feedback: Optional[str], table: Dict[str, float] = STANDARD_FEEDBACK_VALUES) -> float:
    if feedback is None:
        return 0.0
    return table.get(feedback, 0.0)


def _scaled(value, factor: float) -> float:
    """Scaled pass-through of an optional metric. Missing or zero means 0."""
    if not value:
        return 0.0
    return factor * float(value)


def _flag(value: Optional[bool], amount: float) -> float:
    return amount if value else 0.0


# ---------------------------------------------------------------------------
# Filer
# ---------------------------------------------------------------------------


def _filer_confidence_calibration(decision: FilerDecision) -> float:
    """
    Negative distance between stated confidence and whether the filing was right.

    Overconfident wrong calls and underconfident right calls cost the same.
    """
    if decision.confidence is None or decision.user_feedback is None:
        return 0.0
    was_correct = 1.0 if decision.user_feedback == Feedback.CONFIRMED else 0.0
    return -abs(float(decision.confidence) - was_correct)


def _filer_completion_success(final_status: Optional[str], completed: Optional[bool], cycles: int) -> float:
    if final_status == ItemStatus.DONE or (final_status is None and completed):
        # Smooth completion earns the full bonus
        return 1.0 if cycles == 0 else 0.5
    if final_status == ItemStatus.COLD_STORAGE:
        return -0.3
    return 0.0


def calculate_filer_components(decision: FilerDecision, context: RewardContext) -> FilerComponents:
    outcome = decision.outcome
    action = decision.action
    cycles = int(outcome.cycle_count or 0)
    final_status = str(outcome.final_status).upper() if outcome.final_status else None
    is_done = final_status == ItemStatus.DONE or (final_status is None and bool(outcome.completed_successfully))

    efficiency = 0.0
    if is_done:
        efficiency = time_efficiency(
            outcome.total_time_in_create,
            outcome.swimlane or action.swimlane,
            outcome.priority or action.priority,
        )

    goal_alignment = 0.0
    focus = context.strategic_focus
    if focus is not None and focus.dominant_label in action.labels:
        goal_alignment = STRATEGIC_MATCH_BONUS

    return FilerComponents(
        immediate=FilerImmediate(
            user_feedback=feedback_value(decision.user_feedback),
            confidence_calibration=_filer_confidence_calibration(decision),
        ),
        delayed=FilerDelayed(
            completion_success=_filer_completion_success(final_status, outcome.completed_successfully, cycles),
            blockage_avoidance=-1.0 if outcome.blocked_at else 0.0,
            rework_penalty=-REWORK_PENALTY_PER_CYCLE * cycles if cycles else 0.0,
            time_efficiency=efficiency,
        ),
        strategic=FilerStrategic(
            goal_alignment=goal_alignment,
            opportunity_cost=_scaled(outcome.opportunity_cost, -0.2),
        ),
    )


# ---------------------------------------------------------------------------
# Librarian
# ---------------------------------------------------------------------------


def calculate_librarian_components(decision: LibrarianDecision, context: RewardContext) -> LibrarianComponents:
    outcome = decision.outcome
    return LibrarianComponents(
        immediate=LibrarianImmediate(
            user_feedback=feedback_value(decision.user_feedback),
        ),
        delayed=LibrarianDelayed(
            conflict_prevention=_flag(outcome.conflict_prevented, 1.0),
            false_positive_penalty=_flag(outcome.false_positive, -0.5),
            missed_issue_penalty=_flag(outcome.missed_issue, -1.0),
            dependency_accuracy=_flag(outcome.dependency_was_real, 0.5),
        ),
    )


# ---------------------------------------------------------------------------
# Prioritizer
# ---------------------------------------------------------------------------


def calculate_prioritizer_components(decision: PrioritizerDecision, context: RewardContext) -> PrioritizerComponents:
    outcome = decision.outcome
    completed = bool(outcome.completed_successfully) or (
        outcome.final_status is not None and str(outcome.final_status).upper() == ItemStatus.DONE
    )
    return PrioritizerComponents(
        immediate=PrioritizerImmediate(
            user_acceptance=feedback_value(decision.user_feedback),
        ),
        delayed=PrioritizerDelayed(
            completion_success=1.0 if completed else 0.0,
            time_efficiency=_scaled(outcome.time_efficiency, 0.5),
            strategic_progress=_scaled(outcome.strategic_progress, 0.3),
            opportunity_cost=_scaled(outcome.opportunity_cost, -0.2),
        ),
        contextual=PrioritizerContextual(
            energy_alignment=_scaled(outcome.energy_alignment, 0.2),
            flow_maintenance=_scaled(outcome.flow_maintenance, 0.2),
        ),
    )


# ---------------------------------------------------------------------------
# Storer
# ---------------------------------------------------------------------------


def _changed_field_ratio(action: Dict[str, object], correction: Dict[str, object]) -> float:
    """Share of the action's fields the correction replaced. Structural, not textual."""
    if not action:
        return 0.0
    changed = sum(1 for key, value in action.items() if key in correction and correction[key] != value)
    return changed / len(action)


def calculate_storer_components(decision: StorerDecision, context: RewardContext) -> StorerComponents:
    outcome = decision.outcome

    edit_distance = 0.0
    if decision.correction is not None:
        ratio = _changed_field_ratio(decision.action.to_json(), decision.correction.to_json())
        edit_distance = -EDIT_DISTANCE_SCALE * ratio if ratio else 0.0

    return StorerComponents(
        immediate=StorerImmediate(
            user_acceptance=feedback_value(decision.user_feedback),
            edit_distance=edit_distance,
        ),
        delayed=StorerDelayed(
            corpus_coherence=_scaled(outcome.corpus_coherence, 0.5),
            findability=_scaled(outcome.findability, 0.3),
            duplication_penalty=_flag(outcome.duplication_detected, -0.5),
        ),
    )


# ---------------------------------------------------------------------------
# Retriever
# ---------------------------------------------------------------------------


def calculate_retriever_components(decision: RetrieverDecision, context: RewardContext) -> RetrieverComponents:
    outcome = decision.outcome

    edit_distance = 0.0
    corrected = decision.correction.generated_content if decision.correction is not None else None
    generated = decision.action.generated_content
    # Measured only when both texts exist; an emptied correction is not an edit size
    if corrected and generated:
        delta = abs(len(generated) - len(corrected))
        edit_distance = -EDIT_DISTANCE_SCALE * delta / max(len(generated), 1) if delta else 0.0

    return RetrieverComponents(
        immediate=RetrieverImmediate(
            user_acceptance=feedback_value(decision.user_feedback, RETRIEVER_FEEDBACK_VALUES),
            edit_distance=edit_distance,
        ),
        accuracy=RetrieverAccuracy(
            citation_correctness=_scaled(outcome.citation_correctness, 0.5),
            # Each hallucination compounds the penalty
            hallucination_penalty=_scaled(outcome.hallucination_count, -1.0),
            completeness=_scaled(outcome.completeness, 0.3),
        ),
        quality=RetrieverQuality(
            coherence=_scaled(outcome.coherence, 0.4),
            style_alignment=_scaled(outcome.style_alignment, 0.2),
        ),
    )


AGENT_CALCULATORS: Dict[str, Callable[..., ComponentGroup]] = {
    AgentType.FILER.value: calculate_filer_components,
    AgentType.LIBRARIAN.value: calculate_librarian_components,
    AgentType.PRIORITIZER.value: calculate_prioritizer_components,
    AgentType.STORER.value: calculate_storer_components,
    AgentType.RETRIEVER.value: calculate_retriever_components,
}
