# decisions/reward_engine/schemas.py
"""
Typed views of a Decision row, one variant per agent type.

The ledger stores state/action/correction as JSON. Before scoring they are
parsed into the variant matching the decision's agent_type, so each
calculator only sees the fields that exist for its agent. Every field is
optional and unknown keys are preserved: the engine reads what it needs and
never rejects a payload for missing data.

Parsing for scoring is lenient. A field whose stored value does not fit its
type (a string where a list is expected, a non-object state, ...) is read as
its neutral default, so it contributes nothing instead of failing the
decision. Validating OutcomeMetrics directly stays strict.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)
from pydantic.alias_generators import to_camel

from ..choices import Feedback

# Validation context flag that turns malformed fields into their defaults
LENIENT = "lenient"


class ScoringModel(BaseModel):
    """Fields fall back to their default when validated with the lenient context."""

    @field_validator("*", mode="wrap")
    @classmethod
    def neutral_when_malformed(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            if not (info.context or {}).get(LENIENT):
                raise
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)


class Payload(ScoringModel):
    """Base for JSON blobs written by agents and outcome observers (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ---------------------------------------------------------------------------
# Outcome metrics
# ---------------------------------------------------------------------------


class OutcomeMetrics(Payload):
    """Delayed signals observed after the agent acted. Absent means no contribution."""

    # Item lifecycle snapshot, written by the outcome tracker
    final_status: Optional[str] = None
    completed_successfully: Optional[bool] = None
    cycle_count: Optional[int] = None
    blocked_at: Optional[datetime] = None
    total_time_in_create: Optional[float] = None
    time_to_complete: Optional[float] = None
    swimlane: Optional[str] = None
    priority: Optional[str] = None

    strategic_alignment: Optional[float] = None
    opportunity_cost: Optional[float] = None

    # Librarian
    conflict_prevented: Optional[bool] = None
    false_positive: Optional[bool] = None
    missed_issue: Optional[bool] = None
    dependency_was_real: Optional[bool] = None

    # Prioritizer
    time_efficiency: Optional[float] = None
    strategic_progress: Optional[float] = None
    energy_alignment: Optional[float] = None
    flow_maintenance: Optional[float] = None

    # Storer
    corpus_coherence: Optional[float] = None
    findability: Optional[float] = None
    duplication_detected: Optional[bool] = None

    # Retriever
    citation_correctness: Optional[float] = None
    hallucination_count: Optional[int] = None
    completeness: Optional[float] = None
    coherence: Optional[float] = None
    style_alignment: Optional[float] = None


# ---------------------------------------------------------------------------
# Per-agent state / action
# ---------------------------------------------------------------------------


class FilerState(Payload):
    instructions: Optional[str] = None
    routing_notes: Optional[str] = None
    project: Optional[str] = None
    known_projects: List[str] = Field(default_factory=list)


class FilerAction(Payload):
    swimlane: Optional[str] = None
    priority: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    urgency: Optional[str] = None


class LibrarianState(Payload):
    new_item: Optional[Dict[str, Any]] = None
    strategic_context: Optional[Any] = None
    corpus: List[Any] = Field(default_factory=list)


class LibrarianFinding(Payload):
    type: Optional[str] = None
    text: Optional[str] = None


class LibrarianAction(Payload):
    findings: List[LibrarianFinding] = Field(default_factory=list)


class PrioritizerState(Payload):
    candidates: List[Any] = Field(default_factory=list)
    context: Optional[Dict[str, Any]] = None


class PrioritizerAction(Payload):
    recommended_item_id: Optional[str] = None


class StorerState(Payload):
    content: Optional[str] = None
    corpus: List[Any] = Field(default_factory=list)


class StorerAction(Payload):
    title: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class RetrieverState(Payload):
    query: Optional[str] = None
    sources: List[Any] = Field(default_factory=list)


class RetrieverAction(Payload):
    generated_content: Optional[str] = None
    citations: List[Any] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Tagged union
# ---------------------------------------------------------------------------


class DecisionPayload(ScoringModel):
    """Fields every agent variant shares."""

    model_config = ConfigDict(frozen=True)

    user_feedback: Optional[Feedback] = None
    confidence: Optional[float] = None
    outcome: OutcomeMetrics = Field(default_factory=OutcomeMetrics)

    @property
    def has_signal(self) -> bool:
        return self.user_feedback is not None or bool(self.outcome.model_fields_set or self.outcome.model_extra)


class FilerDecision(DecisionPayload):
    agent_type: Literal["FILER"]
    state: FilerState = Field(default_factory=FilerState)
    action: FilerAction = Field(default_factory=FilerAction)
    correction: Optional[FilerAction] = None


class LibrarianDecision(DecisionPayload):
    agent_type: Literal["LIBRARIAN"]
    state: LibrarianState = Field(default_factory=LibrarianState)
    action: LibrarianAction = Field(default_factory=LibrarianAction)
    correction: Optional[LibrarianAction] = None


class PrioritizerDecision(DecisionPayload):
    agent_type: Literal["PRIORITIZER"]
    state: PrioritizerState = Field(default_factory=PrioritizerState)
    action: PrioritizerAction = Field(default_factory=PrioritizerAction)
    correction: Optional[PrioritizerAction] = None


class StorerDecision(DecisionPayload):
    agent_type: Literal["STORER"]
    state: StorerState = Field(default_factory=StorerState)
    action: StorerAction = Field(default_factory=StorerAction)
    correction: Optional[StorerAction] = None


class RetrieverDecision(DecisionPayload):
    agent_type: Literal["RETRIEVER"]
    state: RetrieverState = Field(default_factory=RetrieverState)
    action: RetrieverAction = Field(default_factory=RetrieverAction)
    correction: Optional[RetrieverAction] = None


AgentDecision = Annotated[
    Union[
        FilerDecision,
        LibrarianDecision,
        PrioritizerDecision,
        StorerDecision,
        RetrieverDecision,
    ],
    Field(discriminator="agent_type"),
]

_agent_decision_adapter: TypeAdapter[AgentDecision] = TypeAdapter(AgentDecision)


def _json_object(value: Any) -> Dict[str, Any]:
    # Stored JSON that is not an object carries no fields
    return dict(value) if isinstance(value, Mapping) else {}


def parse_decision(
    agent_type: str,
    state: Optional[Mapping[str, Any]] = None,
    action: Optional[Mapping[str, Any]] = None,
    correction: Optional[Mapping[str, Any]] = None,
    user_feedback: Optional[str] = None,
    confidence: Optional[float] = None,
    outcome_metrics: Optional[Mapping[str, Any]] = None,
) -> AgentDecision:
    """
    Build the typed variant for one decision from its stored JSON columns.

    Only an unknown agent_type raises; malformed fields read as their defaults.
    """
    return _agent_decision_adapter.validate_python(
        {
            "agent_type": agent_type,
            "state": _json_object(state),
            "action": _json_object(action),
            "correction": _json_object(correction) or None,
            "user_feedback": user_feedback,
            "confidence": confidence,
            "outcome": _json_object(outcome_metrics),
        },
        context={LENIENT: True},
    )


def payload_from_model(decision) -> AgentDecision:
    """Typed variant of a decisions.models.Decision instance."""
    return parse_decision(
        agent_type=decision.agent_type,
        state=decision.state,
        action=decision.action,
        correction=decision.user_correction,
        user_feedback=decision.user_feedback,
        confidence=decision.confidence,
        outcome_metrics=decision.outcome_metrics,
    )
