# decisions/tests/test_engine.py
"""
Reward Engine Unit Tests
========================

Tests for the pure scoring layers of the reward engine.

This module tests:
1. Expected-time lookups and the time efficiency signal
2. Per-agent component calculators
3. Weight tables, overrides and lockstep aggregation
4. Reward clamping, monotonicity, feedback ordering and idempotence

Test Philosophy:
----------------
- Test MATH, not just models
- Absent signals must always be neutral
- Tests are deterministic and do not require external services
"""

from __future__ import annotations

from django.test import TestCase
from pydantic import ValidationError

from decisions.exceptions import UnknownAgentTypeError, WeightTableMismatchError
from decisions.models import Decision
from decisions.reward_engine.aggregation import REWARD_BOUND, aggregate_reward, clamp_reward, weighted_sum
from decisions.reward_engine.components import FilerComponents, LibrarianComponents
from decisions.reward_engine.context import EMPTY_CONTEXT, RewardContext, StrategicFocus
from decisions.reward_engine.engine import RewardEngine, score_decision
from decisions.reward_engine.expected_time import expected_minutes, time_efficiency
from decisions.reward_engine.schemas import OutcomeMetrics, parse_decision
from decisions.reward_engine.weights import (
    COMPONENT_TREES,
    DEFAULT_REWARD_WEIGHTS,
    build_weight_table,
)

AGENT_TYPES = ["FILER", "LIBRARIAN", "PRIORITIZER", "STORER", "RETRIEVER"]

JOB_1 = "Job 1 (Income)"
JOB_2 = "Job 2 (Authority)"


def filer_decision(**overrides):
    params = {
        "agent_type": "FILER",
        "state": {"instructions": "Refactor the IngePro landing page"},
        "action": {"swimlane": "PROJECT", "priority": "MEDIUM", "labels": [JOB_1], "urgency": "To Do"},
    }
    params.update(overrides)
    return parse_decision(**params)


def leaf_values(tree):
    return dict(tree.leaves())


# ===========================================================================
# EXPECTED TIME TESTS
# ===========================================================================


class TestExpectedTime(TestCase):
    """Expected duration is base minutes per swimlane times a priority multiplier."""

    def test_expected_minutes_lookup(self) -> None:
        self.assertAlmostEqual(expected_minutes("EXPEDITE", "HIGH"), 96.0)
        self.assertAlmostEqual(expected_minutes("PROJECT", "MEDIUM"), 480.0)
        self.assertAlmostEqual(expected_minutes("HABIT", "LOW"), 72.0)
        self.assertAlmostEqual(expected_minutes("HOME", "MEDIUM"), 180.0)

    def test_unknown_swimlane_and_priority_use_defaults(self) -> None:
        self.assertAlmostEqual(expected_minutes(None, None), 480.0)
        self.assertAlmostEqual(expected_minutes("GARDEN", "URGENT"), 480.0)

    def test_fast_completion_earns_bonus(self) -> None:
        self.assertEqual(time_efficiency(384, "PROJECT", "MEDIUM"), 0.5)

    def test_moderate_overrun_is_neutral(self) -> None:
        # 1.5x expected sits between the two thresholds
        self.assertEqual(time_efficiency(720, "PROJECT", "MEDIUM"), 0.0)

    def test_slow_completion_is_penalized(self) -> None:
        self.assertEqual(time_efficiency(1000, "PROJECT", "MEDIUM"), -0.5)

    def test_missing_time_is_neutral(self) -> None:
        self.assertEqual(time_efficiency(None, "PROJECT", "MEDIUM"), 0.0)
        self.assertEqual(time_efficiency(0, "PROJECT", "MEDIUM"), 0.0)


# ===========================================================================
# CALCULATOR TESTS
# ===========================================================================


class TestFilerCalculator(TestCase):

    def test_smooth_completion_scenario(self) -> None:
        """CONFIRMED, DONE, no rework, no blockage, 80% of expected time."""
        decision = filer_decision(
            user_feedback="CONFIRMED",
            outcome_metrics={
                "finalStatus": "DONE",
                "cycleCount": 0,
                "totalTimeInCreate": 0.8 * 480,
                "swimlane": "PROJECT",
                "priority": "MEDIUM",
            },
        )

        result = score_decision(decision, EMPTY_CONTEXT, DEFAULT_REWARD_WEIGHTS)
        leaves = leaf_values(result.components)

        self.assertEqual(leaves["immediate.userFeedback"], 1.0)
        self.assertEqual(leaves["delayed.completionSuccess"], 1.0)
        self.assertEqual(leaves["delayed.timeEfficiency"], 0.5)
        others = {k: v for k, v in leaves.items()
                  if k not in ("immediate.userFeedback", "delayed.completionSuccess", "delayed.timeEfficiency")}
        self.assertTrue(all(v == 0.0 for v in others.values()), others)

        self.assertAlmostEqual(result.reward, 1.65)
        self.assertGreater(result.reward, 0.0)
        self.assertLess(result.reward, REWARD_BOUND)

    def test_completion_with_rework_earns_partial_bonus(self) -> None:
        decision = filer_decision(outcome_metrics={"finalStatus": "DONE", "cycleCount": 2})
        components = score_decision(decision).components

        self.assertEqual(components.delayed.completion_success, 0.5)
        self.assertAlmostEqual(components.delayed.rework_penalty, -0.4)

    def test_abandoned_item_is_penalized(self) -> None:
        decision = filer_decision(outcome_metrics={"finalStatus": "COLD_STORAGE"})
        components = score_decision(decision).components

        self.assertEqual(components.delayed.completion_success, -0.3)
        # Time efficiency only applies to completed items
        self.assertEqual(components.delayed.time_efficiency, 0.0)

    def test_blocked_item_is_penalized(self) -> None:
        decision = filer_decision(
            outcome_metrics={"finalStatus": "DONE", "blockedAt": "2024-01-10T09:00:00+00:00"}
        )
        self.assertEqual(score_decision(decision).components.delayed.blockage_avoidance, -1.0)

    def test_confidence_calibration_is_symmetric(self) -> None:
        overconfident_wrong = filer_decision(user_feedback="CORRECTED", confidence=0.9)
        underconfident_right = filer_decision(user_feedback="CONFIRMED", confidence=0.1)

        wrong = score_decision(overconfident_wrong).components.immediate.confidence_calibration
        right = score_decision(underconfident_right).components.immediate.confidence_calibration

        self.assertAlmostEqual(wrong, -0.9)
        self.assertAlmostEqual(right, -0.9)

    def test_confidence_without_feedback_is_not_calibrated(self) -> None:
        decision = filer_decision(confidence=0.9, outcome_metrics={"finalStatus": "DONE"})
        self.assertEqual(score_decision(decision).components.immediate.confidence_calibration, 0.0)

    def test_goal_alignment_matches_dominant_label(self) -> None:
        focus = StrategicFocus(labels=[JOB_1, JOB_2], counts={JOB_1: 3, JOB_2: 1})
        context = RewardContext(strategic_focus=focus)

        aligned = filer_decision(user_feedback="CONFIRMED")
        misaligned = filer_decision(
            user_feedback="CONFIRMED",
            action={"swimlane": "HABIT", "priority": "LOW", "labels": [JOB_2], "urgency": "On Hold"},
        )

        self.assertEqual(score_decision(aligned, context).components.strategic.goal_alignment, 0.5)
        self.assertEqual(score_decision(misaligned, context).components.strategic.goal_alignment, 0.0)

    def test_opportunity_cost_scaled(self) -> None:
        decision = filer_decision(outcome_metrics={"opportunityCost": 2})
        self.assertAlmostEqual(score_decision(decision).components.strategic.opportunity_cost, -0.4)


class TestStrategicFocus(TestCase):

    def test_highest_count_wins(self) -> None:
        focus = StrategicFocus.from_completed_labels(
            [JOB_1, JOB_2], [[JOB_1], [JOB_2], [JOB_2, "Portfolio"], []]
        )
        self.assertEqual(focus.counts, {JOB_1: 1, JOB_2: 2})
        self.assertEqual(focus.dominant_label, JOB_2)

    def test_tie_goes_to_first_listed_label(self) -> None:
        focus = StrategicFocus.from_completed_labels([JOB_1, JOB_2], [])
        self.assertEqual(focus.dominant_label, JOB_1)

    def test_no_labels_means_no_focus(self) -> None:
        self.assertIsNone(StrategicFocus(labels=[]).dominant_label)


class TestOtherCalculators(TestCase):

    def test_librarian_outcome_flags(self) -> None:
        decision = parse_decision(
            "LIBRARIAN",
            user_feedback="CONFIRMED",
            outcome_metrics={
                "conflictPrevented": True,
                "falsePositive": True,
                "missedIssue": True,
                "dependencyWasReal": True,
            },
        )
        leaves = leaf_values(score_decision(decision).components)

        self.assertEqual(leaves["immediate.userFeedback"], 1.0)
        self.assertEqual(leaves["delayed.conflictPrevention"], 1.0)
        self.assertEqual(leaves["delayed.falsePositivePenalty"], -0.5)
        self.assertEqual(leaves["delayed.missedIssuePenalty"], -1.0)
        self.assertEqual(leaves["delayed.dependencyAccuracy"], 0.5)

    def test_prioritizer_pass_throughs(self) -> None:
        decision = parse_decision(
            "PRIORITIZER",
            action={"recommended_item_id": "42"},
            outcome_metrics={
                "completedSuccessfully": True,
                "timeEfficiency": 1.0,
                "strategicProgress": 1.0,
                "opportunityCost": 1.0,
                "energyAlignment": 1.0,
                "flowMaintenance": 1.0,
            },
        )
        leaves = leaf_values(score_decision(decision).components)

        self.assertEqual(leaves["delayed.completionSuccess"], 1.0)
        self.assertAlmostEqual(leaves["delayed.timeEfficiency"], 0.5)
        self.assertAlmostEqual(leaves["delayed.strategicProgress"], 0.3)
        self.assertAlmostEqual(leaves["delayed.opportunityCost"], -0.2)
        self.assertAlmostEqual(leaves["contextual.energyAlignment"], 0.2)
        self.assertAlmostEqual(leaves["contextual.flowMaintenance"], 0.2)

    def test_storer_edit_distance_is_structural(self) -> None:
        decision = parse_decision(
            "STORER",
            action={"title": "Q3 notes", "category": "Finance", "tags": ["q3"]},
            correction={"title": "Q3 board notes", "category": "Finance", "tags": ["q3"]},
            user_feedback="CORRECTED",
        )
        components = score_decision(decision).components

        self.assertEqual(components.immediate.user_acceptance, -0.5)
        # One of three fields changed
        self.assertAlmostEqual(components.immediate.edit_distance, -0.1 / 3)

    def test_storer_duplication_penalty(self) -> None:
        decision = parse_decision(
            "STORER",
            outcome_metrics={"corpusCoherence": 1.0, "findability": 1.0, "duplicationDetected": True},
        )
        delayed = score_decision(decision).components.delayed

        self.assertAlmostEqual(delayed.corpus_coherence, 0.5)
        self.assertAlmostEqual(delayed.findability, 0.3)
        self.assertEqual(delayed.duplication_penalty, -0.5)

    def test_retriever_correction_scenario(self) -> None:
        """CORRECTED with two hallucinations lands negative but not below the floor."""
        decision = parse_decision(
            "RETRIEVER",
            action={"generatedContent": "Summary of the Q3 plan."},
            user_feedback="CORRECTED",
            outcome_metrics={"hallucinationCount": 2},
        )
        result = score_decision(decision)

        self.assertEqual(result.components.immediate.user_acceptance, -1.0)
        self.assertEqual(result.components.accuracy.hallucination_penalty, -2.0)
        self.assertLess(result.reward, 0.0)
        self.assertGreaterEqual(result.reward, -REWARD_BOUND)

    def test_retriever_edit_distance_uses_length_difference(self) -> None:
        decision = parse_decision(
            "RETRIEVER",
            action={"generatedContent": "abcdefghij"},
            correction={"generatedContent": "abcde"},
            user_feedback="CORRECTED",
        )
        self.assertAlmostEqual(score_decision(decision).components.immediate.edit_distance, -0.05)

    def test_retriever_quality_pass_throughs(self) -> None:
        decision = parse_decision(
            "RETRIEVER",
            outcome_metrics={"citationCorrectness": 1.0, "completeness": 1.0, "coherence": 1.0, "styleAlignment": 1.0},
        )
        leaves = leaf_values(score_decision(decision).components)

        self.assertAlmostEqual(leaves["accuracy.citationCorrectness"], 0.5)
        self.assertAlmostEqual(leaves["accuracy.completeness"], 0.3)
        self.assertAlmostEqual(leaves["quality.coherence"], 0.4)
        self.assertAlmostEqual(leaves["quality.styleAlignment"], 0.2)


# ===========================================================================
# PROPERTY TESTS
# ===========================================================================


class TestRewardProperties(TestCase):

    def test_no_signal_scores_all_zero(self) -> None:
        """Empty outcome metrics and null feedback give zeros and reward 0 for every agent."""
        for agent_type in AGENT_TYPES:
            with self.subTest(agent_type=agent_type):
                decision = parse_decision(agent_type, state={"anything": 1}, action={"anything": 2}, confidence=0.9)
                result = score_decision(decision)

                self.assertEqual(result.reward, 0.0)
                self.assertIsInstance(result.components, COMPONENT_TREES[agent_type])
                self.assertTrue(all(value == 0.0 for _, value in result.components.leaves()))

    def test_feedback_ordering_per_agent(self) -> None:
        """CONFIRMED >= CORRECTED >= OVERRIDDEN on the immediate components."""
        for agent_type in AGENT_TYPES:
            with self.subTest(agent_type=agent_type):
                weights = DEFAULT_REWARD_WEIGHTS[agent_type]
                immediate = {}
                for feedback in ("CONFIRMED", "CORRECTED", "OVERRIDDEN"):
                    decision = parse_decision(agent_type, user_feedback=feedback, confidence=0.7)
                    components = score_decision(decision).components
                    immediate[feedback] = weighted_sum(components.immediate, weights.immediate)

                    first_leaf = next(iter(components.immediate.leaves()))[1]
                    immediate[f"{feedback}-leaf"] = first_leaf

                self.assertGreaterEqual(immediate["CONFIRMED"], immediate["CORRECTED"])
                self.assertGreaterEqual(immediate["CORRECTED"], immediate["OVERRIDDEN"])
                self.assertGreaterEqual(immediate["CONFIRMED-leaf"], immediate["CORRECTED-leaf"])
                self.assertGreaterEqual(immediate["CORRECTED-leaf"], immediate["OVERRIDDEN-leaf"])

    def test_rework_strictly_lowers_reward(self) -> None:
        previous_penalty, previous_reward = None, None
        for cycles in range(0, 6):
            decision = filer_decision(
                user_feedback="CONFIRMED",
                outcome_metrics={"finalStatus": "DONE", "cycleCount": cycles},
            )
            result = score_decision(decision)

            if previous_penalty is not None:
                self.assertLess(result.components.delayed.rework_penalty, previous_penalty)
                self.assertLess(result.reward, previous_reward)
            previous_penalty = result.components.delayed.rework_penalty
            previous_reward = result.reward

    def test_scoring_is_idempotent(self) -> None:
        decision = filer_decision(
            user_feedback="CORRECTED",
            confidence=0.6,
            outcome_metrics={"finalStatus": "DONE", "cycleCount": 1, "totalTimeInCreate": 900},
        )
        first = score_decision(decision)
        second = score_decision(decision)

        self.assertEqual(first.reward, second.reward)
        self.assertEqual(first.components, second.components)

    def test_reward_clamped_at_floor(self) -> None:
        decision = parse_decision("RETRIEVER", user_feedback="OVERRIDDEN", outcome_metrics={"hallucinationCount": 10})
        self.assertEqual(score_decision(decision).reward, -REWARD_BOUND)

    def test_reward_clamped_at_ceiling(self) -> None:
        weights = build_weight_table({"LIBRARIAN": {"delayed": {"conflictPrevention": 10.0}}})
        decision = parse_decision("LIBRARIAN", user_feedback="CONFIRMED", outcome_metrics={"conflictPrevented": True})

        self.assertEqual(score_decision(decision, EMPTY_CONTEXT, weights).reward, REWARD_BOUND)

    def test_clamp_is_truncation(self) -> None:
        self.assertEqual(clamp_reward(7.3), 5.0)
        self.assertEqual(clamp_reward(-12.0), -5.0)
        self.assertEqual(clamp_reward(4.99), 4.99)
        self.assertEqual(clamp_reward(-5.0), -5.0)


# ===========================================================================
# WEIGHT TABLE TESTS
# ===========================================================================


class TestWeightTables(TestCase):

    def test_every_agent_has_a_matching_default_table(self) -> None:
        for agent_type in AGENT_TYPES:
            self.assertIsInstance(DEFAULT_REWARD_WEIGHTS[agent_type], COMPONENT_TREES[agent_type])

    def test_default_filer_weights(self) -> None:
        weights = dict(DEFAULT_REWARD_WEIGHTS["FILER"].leaves())
        self.assertEqual(weights["immediate.userFeedback"], 1.0)
        self.assertEqual(weights["immediate.confidenceCalibration"], 0.1)
        self.assertEqual(weights["delayed.timeEfficiency"], 0.3)
        self.assertEqual(weights["strategic.goalAlignment"], 0.4)

    def test_override_merges_into_defaults(self) -> None:
        table = build_weight_table({"FILER": {"delayed": {"timeEfficiency": 0.9}}})

        self.assertEqual(table["FILER"].delayed.time_efficiency, 0.9)
        self.assertEqual(table["FILER"].delayed.completion_success, 0.5)
        self.assertIs(table["LIBRARIAN"], DEFAULT_REWARD_WEIGHTS["LIBRARIAN"])
        # Defaults are left untouched
        self.assertEqual(DEFAULT_REWARD_WEIGHTS["FILER"].delayed.time_efficiency, 0.3)

    def test_override_with_unknown_component_raises(self) -> None:
        with self.assertRaises(ValidationError):
            build_weight_table({"FILER": {"delayed": {"timeEficiency": 0.9}}})

    def test_override_for_unknown_agent_raises(self) -> None:
        with self.assertRaises(UnknownAgentTypeError):
            build_weight_table({"JANITOR": {"immediate": {"userFeedback": 1.0}}})

    def test_mismatched_weight_table_raises(self) -> None:
        with self.assertRaises(WeightTableMismatchError):
            weighted_sum(FilerComponents(), LibrarianComponents())

    def test_aggregate_walks_both_trees(self) -> None:
        components = LibrarianComponents.model_validate(
            {"immediate": {"userFeedback": 1.0}, "delayed": {"dependencyAccuracy": 0.5}}
        )
        # 1.0 * 1.0 + 0.5 * 0.5
        self.assertAlmostEqual(aggregate_reward(components, DEFAULT_REWARD_WEIGHTS["LIBRARIAN"]), 1.25)


class TestAgentDispatch(TestCase):

    def test_unknown_agent_type_is_rejected_by_parser(self) -> None:
        with self.assertRaises(ValidationError):
            parse_decision("JANITOR")

    def test_unknown_agent_type_is_rejected_by_engine(self) -> None:
        decision = Decision(agent_type="JANITOR", state={}, action={}, model_version="x")
        with self.assertRaises(UnknownAgentTypeError):
            RewardEngine(weights=DEFAULT_REWARD_WEIGHTS).compute(decision)

    def test_unknown_payload_keys_are_kept(self) -> None:
        decision = filer_decision(outcome_metrics={"reviewerMood": "great"})
        self.assertEqual(decision.outcome.to_json(), {"reviewerMood": "great"})
        # Unknown keys still count as a signal but contribute nothing
        self.assertEqual(score_decision(decision).reward, 0.0)


# ===========================================================================
# MALFORMED PAYLOAD TESTS
# ===========================================================================

# Stored state/action/correction blobs whose fields do not fit the agent's shape
MALFORMED_PAYLOADS = [
    ("FILER", {"action": {"swimlane": "PROJECT", "labels": JOB_1}}),
    ("FILER", {"action": {"swimlane": 3, "priority": ["HIGH"]}}),
    ("FILER", {"state": {"knownProjects": [{"id": 1, "name": "Portfolio"}]}}),
    ("LIBRARIAN", {"action": {"findings": ["duplicate of item 12"]}}),
    ("STORER", {"state": ["a"]}),
    ("PRIORITIZER", {"action": "item-42", "state": None}),
    ("RETRIEVER", {"action": {"generatedContent": 42}, "correction": ["rewrite"]}),
]


class TestMalformedPayloads(TestCase):

    def test_malformed_fields_score_as_neutral(self) -> None:
        for agent_type, payload in MALFORMED_PAYLOADS:
            with self.subTest(agent_type=agent_type, payload=payload):
                decision = parse_decision(agent_type, user_feedback="CONFIRMED", **payload)
                result = score_decision(decision)

                # Feedback is the only usable signal left
                self.assertEqual(result.reward, 1.0)
                self.assertIn(1.0, dict(result.components.immediate.leaves()).values())

    def test_malformed_field_falls_back_to_default(self) -> None:
        decision = filer_decision(action={"swimlane": 3, "labels": JOB_1, "urgency": "To Do"})

        self.assertIsNone(decision.action.swimlane)
        self.assertEqual(decision.action.labels, [])
        self.assertEqual(decision.action.urgency, "To Do")

    def test_malformed_outcome_metric_is_ignored(self) -> None:
        decision = filer_decision(outcome_metrics={"cycleCount": "twice", "finalStatus": "DONE"})
        delayed = score_decision(decision).components.delayed

        self.assertEqual(delayed.rework_penalty, 0.0)
        self.assertEqual(delayed.completion_success, 1.0)

    def test_direct_outcome_validation_stays_strict(self) -> None:
        with self.assertRaises(ValidationError):
            OutcomeMetrics.model_validate({"cycleCount": "twice"})

    def test_retriever_emptied_correction_has_no_edit_distance(self) -> None:
        decision = parse_decision(
            "RETRIEVER",
            action={"generatedContent": "abcdefghij"},
            correction={"generatedContent": ""},
            user_feedback="CORRECTED",
        )
        self.assertEqual(score_decision(decision).components.immediate.edit_distance, 0.0)
