# decisions/reward_engine/components.py
"""
Reward component trees.

Each agent type has a fixed two-level tree of named numeric leaves. The same
classes describe both a decision's component values and the agent's weight
table, so a weight can only exist for a component that exists.
"""

from __future__ import annotations

from typing import Dict, Iterator, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ComponentGroup(BaseModel):
    """A node of a component tree. Leaves are floats, inner nodes are groups."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    def leaves(self, prefix: str = "") -> Iterator[Tuple[str, float]]:
        """Yield (dotted camelCase path, value) for every leaf below this node."""
        for name, field in type(self).model_fields.items():
            key = field.alias or name
            path = f"{prefix}.{key}" if prefix else key
            value = getattr(self, name)
            if isinstance(value, ComponentGroup):
                yield from value.leaves(path)
            else:
                yield path, value

    def to_json(self) -> Dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Filer
# ---------------------------------------------------------------------------


class FilerImmediate(ComponentGroup):
    user_feedback: float = 0.0
    confidence_calibration: float = 0.0


class FilerDelayed(ComponentGroup):
    completion_success: float = 0.0
    blockage_avoidance: float = 0.0
    rework_penalty: float = 0.0
    time_efficiency: float = 0.0


class FilerStrategic(ComponentGroup):
    goal_alignment: float = 0.0
    opportunity_cost: float = 0.0


class FilerComponents(ComponentGroup):
    immediate: FilerImmediate = Field(default_factory=FilerImmediate)
    delayed: FilerDelayed = Field(default_factory=FilerDelayed)
    strategic: FilerStrategic = Field(default_factory=FilerStrategic)


# ---------------------------------------------------------------------------
# Librarian
# ---------------------------------------------------------------------------


class LibrarianImmediate(ComponentGroup):
    user_feedback: float = 0.0


class LibrarianDelayed(ComponentGroup):
    conflict_prevention: float = 0.0
    false_positive_penalty: float = 0.0
    missed_issue_penalty: float = 0.0
    dependency_accuracy: float = 0.0


class LibrarianComponents(ComponentGroup):
    immediate: LibrarianImmediate = Field(default_factory=LibrarianImmediate)
    delayed: LibrarianDelayed = Field(default_factory=LibrarianDelayed)


# ---------------------------------------------------------------------------
# Prioritizer
# ---------------------------------------------------------------------------


class PrioritizerImmediate(ComponentGroup):
    user_acceptance: float = 0.0


class PrioritizerDelayed(ComponentGroup):
    completion_success: float = 0.0
    time_efficiency: float = 0.0
    strategic_progress: float = 0.0
    opportunity_cost: float = 0.0


class PrioritizerContextual(ComponentGroup):
    energy_alignment: float = 0.0
    flow_maintenance: float = 0.0


class PrioritizerComponents(ComponentGroup):
    immediate: PrioritizerImmediate = Field(default_factory=PrioritizerImmediate)
    delayed: PrioritizerDelayed = Field(default_factory=PrioritizerDelayed)
    contextual: PrioritizerContextual = Field(default_factory=PrioritizerContextual)


# ---------------------------------------------------------------------------
# Storer
# ---------------------------------------------------------------------------


class StorerImmediate(ComponentGroup):
    user_acceptance: float = 0.0
    edit_distance: float = 0.0


class StorerDelayed(ComponentGroup):
    corpus_coherence: float = 0.0
    findability: float = 0.0
    duplication_penalty: float = 0.0


class StorerComponents(ComponentGroup):
    immediate: StorerImmediate = Field(default_factory=StorerImmediate)
    delayed: StorerDelayed = Field(default_factory=StorerDelayed)


# ---------------------------------------------------------------------------
# Retriever
# ---------------------------------------------------------------------------


class RetrieverImmediate(ComponentGroup):
    user_acceptance: float = 0.0
    edit_distance: float = 0.0


class RetrieverAccuracy(ComponentGroup):
    citation_correctness: float = 0.0
    hallucination_penalty: float = 0.0
    completeness: float = 0.0


class RetrieverQuality(ComponentGroup):
    coherence: float = 0.0
    style_alignment: float = 0.0


class RetrieverComponents(ComponentGroup):
    immediate: RetrieverImmediate = Field(default_factory=RetrieverImmediate)
    accuracy: RetrieverAccuracy = Field(default_factory=RetrieverAccuracy)
    quality: RetrieverQuality = Field(default_factory=RetrieverQuality)
