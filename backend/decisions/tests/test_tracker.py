# decisions/tests/test_tracker.py
"""
Outcome Tracking & Batch Reward Tests
=====================================

Test Categories:
----------------
1. Event Tests - terminal transitions enqueue outcome tracking after commit
2. Worker Tests - track_item_outcome snapshots the item into its decisions
3. Sweep Tests - calculate_pending_rewards pages through stale decisions
4. Failure Tests - one bad decision never aborts the batch
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase

from decisions.models import Decision
from decisions.outcomes import build_outcome_metrics
from decisions.reward_engine.celery_tasks import (
    calculate_pending_rewards,
    recompute_decision_reward,
    track_item_outcome,
)
from decisions.reward_engine.engine import RewardEngine
from items.choices import ItemStatus
from items.models import Item
from items.services import transition_item

User = get_user_model()

T0 = datetime(2024, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


def create_test_user(username: str = "testuser") -> User:
    """Create a test user with unique username."""
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="testpass123",
    )


def create_test_item(user, **fields) -> Item:
    params = {"title": "Write the Q3 report", "swimlane": "PROJECT", "priority": "MEDIUM"}
    params.update(fields)
    return Item.objects.create(user=user, **params)


def create_decision(user, item=None, agent_type="FILER", **fields) -> Decision:
    params = {
        "agent_type": agent_type,
        "state": {"instructions": "Write the Q3 report"},
        "action": {"swimlane": "PROJECT", "priority": "MEDIUM", "labels": [], "urgency": "To Do"},
        "model_version": "gpt-4.1-mini-20240115",
        "user": user,
        "item": item,
    }
    params.update(fields)
    return Decision.objects.create(**params)


def work_item_to_done(item, minutes_in_doing=60):
    transition_item(item.id, ItemStatus.TODO, now=T0)
    transition_item(item.id, ItemStatus.DOING, now=T0 + timedelta(minutes=1))
    return transition_item(item.id, ItemStatus.DONE, now=T0 + timedelta(minutes=1 + minutes_in_doing))


# ===========================================================================
# EVENT TESTS
# ===========================================================================


class TerminalStatusEventTest(TestCase):

    def setUp(self):
        self.user = create_test_user()
        self.item = create_test_item(self.user)

    @patch("decisions.tracker.track_item_outcome.delay")
    def test_terminal_transition_enqueues_tracking_after_commit(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            work_item_to_done(self.item)

        self.assertEqual(len(callbacks), 1)
        mock_delay.assert_called_once_with(self.item.id)

    @patch("decisions.tracker.track_item_outcome.delay")
    def test_cold_storage_is_terminal(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True):
            transition_item(self.item.id, ItemStatus.COLD_STORAGE)

        mock_delay.assert_called_once_with(self.item.id)

    @patch("decisions.tracker.track_item_outcome.delay")
    def test_non_terminal_transition_does_not_enqueue(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            transition_item(self.item.id, ItemStatus.DOING)
            transition_item(self.item.id, ItemStatus.BLOCKED)

        self.assertEqual(callbacks, [])
        mock_delay.assert_not_called()

    @patch("decisions.tracker.track_item_outcome.delay")
    def test_end_to_end_completion_scores_decision(self, mock_delay):
        """Completing an item rewards the filing decision attached to it."""
        mock_delay.side_effect = lambda item_id: track_item_outcome.apply(args=[item_id]).get()
        decision = create_decision(self.user, self.item)

        with self.captureOnCommitCallbacks(execute=True):
            work_item_to_done(self.item, minutes_in_doing=60)

        decision.refresh_from_db()
        self.assertEqual(decision.outcome_metrics["finalStatus"], "DONE")
        self.assertEqual(decision.outcome_metrics["totalTimeInCreate"], 60.0)
        self.assertEqual(decision.reward_components["delayed"]["completionSuccess"], 1.0)
        self.assertEqual(decision.reward_components["delayed"]["timeEfficiency"], 0.5)
        # completionSuccess 0.5 * 1.0 + timeEfficiency 0.3 * 0.5
        self.assertAlmostEqual(decision.reward, 0.65)


# ===========================================================================
# WORKER TESTS
# ===========================================================================


class TrackItemOutcomeTest(TestCase):

    def setUp(self):
        self.user = create_test_user()
        self.item = create_test_item(self.user)

    def test_snapshot_contains_lifecycle_fields(self):
        transition_item(self.item.id, ItemStatus.DOING, now=T0)
        transition_item(self.item.id, ItemStatus.BLOCKED, now=T0 + timedelta(minutes=30))
        transition_item(self.item.id, ItemStatus.DOING, now=T0 + timedelta(minutes=90))
        transition_item(self.item.id, ItemStatus.IN_REVIEW, now=T0 + timedelta(minutes=120))
        transition_item(self.item.id, ItemStatus.DOING, now=T0 + timedelta(minutes=130))
        item = transition_item(self.item.id, ItemStatus.DONE, now=T0 + timedelta(minutes=140))

        metrics = build_outcome_metrics(item)

        self.assertEqual(metrics["finalStatus"], "DONE")
        self.assertTrue(metrics["completedSuccessfully"])
        self.assertEqual(metrics["cycleCount"], 1)
        self.assertEqual(metrics["blockedAt"], (T0 + timedelta(minutes=30)).isoformat())
        self.assertAlmostEqual(metrics["totalTimeInCreate"], 70.0)
        self.assertAlmostEqual(metrics["timeToComplete"], 140.0)
        self.assertEqual(metrics["swimlane"], "PROJECT")
        self.assertEqual(metrics["priority"], "MEDIUM")

    def test_untouched_fields_are_left_out(self):
        item = create_test_item(self.user, swimlane=None, priority=None, status=ItemStatus.COLD_STORAGE)
        metrics = build_outcome_metrics(item)

        self.assertEqual(set(metrics), {"finalStatus", "completedSuccessfully", "cycleCount"})
        self.assertFalse(metrics["completedSuccessfully"])

    def test_tracking_updates_every_linked_decision(self):
        first = create_decision(self.user, self.item)
        second = create_decision(self.user, self.item, agent_type="PRIORITIZER", action={"recommended_item_id": "1"})
        unrelated = create_decision(self.user, create_test_item(self.user))
        work_item_to_done(self.item)

        result = track_item_outcome.apply(args=[self.item.id]).get()

        self.assertEqual(result, {"processed": 2, "errors": 0})
        for decision in (first, second):
            decision.refresh_from_db()
            self.assertIsNotNone(decision.outcome_observed_at)
            self.assertIsNotNone(decision.reward)
        unrelated.refresh_from_db()
        self.assertIsNone(unrelated.reward)

    def test_tracking_twice_does_not_double_count(self):
        decision = create_decision(self.user, self.item)
        work_item_to_done(self.item)

        track_item_outcome.apply(args=[self.item.id]).get()
        decision.refresh_from_db()
        first_reward, first_components = decision.reward, decision.reward_components

        track_item_outcome.apply(args=[self.item.id]).get()
        decision.refresh_from_db()

        self.assertEqual(decision.reward, first_reward)
        self.assertEqual(decision.reward_components, first_components)

    def test_non_terminal_item_is_skipped(self):
        decision = create_decision(self.user, self.item)
        transition_item(self.item.id, ItemStatus.DOING)

        self.assertIsNone(track_item_outcome.apply(args=[self.item.id]).get())
        decision.refresh_from_db()
        self.assertEqual(decision.outcome_metrics, {})

    def test_missing_item_returns_none(self):
        self.assertIsNone(track_item_outcome.apply(args=[999999]).get())

    def test_failing_decision_is_isolated(self):
        bad = create_decision(self.user, self.item)
        good = create_decision(self.user, self.item)
        work_item_to_done(self.item)

        from decisions import recorder
        real_record_outcome = recorder.record_outcome

        def flaky(decision_id, metrics):
            if decision_id == bad.id:
                raise ValueError("corrupt row")
            return real_record_outcome(decision_id, metrics)

        with patch("decisions.reward_engine.celery_tasks.record_outcome", side_effect=flaky):
            result = track_item_outcome.apply(args=[self.item.id]).get()

        self.assertEqual(result, {"processed": 1, "errors": 1})
        good.refresh_from_db()
        self.assertIsNotNone(good.reward)

    def test_recompute_task_returns_reward(self):
        decision = create_decision(self.user, user_feedback="CONFIRMED")

        self.assertEqual(recompute_decision_reward.apply(args=[str(decision.id)]).get(), 1.0)
        decision.refresh_from_db()
        self.assertEqual(decision.reward, 1.0)

    def test_recompute_task_missing_decision_returns_none(self):
        self.assertIsNone(recompute_decision_reward.apply(args=["00000000-0000-0000-0000-000000000000"]).get())


# ===========================================================================
# SWEEP TESTS
# ===========================================================================


class CalculatePendingRewardsTest(TestCase):

    def setUp(self):
        self.user = create_test_user()

    def test_sweep_scores_decisions_with_a_signal(self):
        with_feedback = create_decision(self.user, user_feedback="CONFIRMED")
        done_item = create_test_item(self.user, status=ItemStatus.DONE, cycle_count=0)
        with_terminal_item = create_decision(self.user, done_item)
        no_signal = create_decision(self.user, create_test_item(self.user))

        result = calculate_pending_rewards.apply(kwargs={"page_size": 1, "max_pages": 10}).get()

        self.assertEqual(result, {"processed": 2, "errors": 0})
        with_feedback.refresh_from_db()
        with_terminal_item.refresh_from_db()
        no_signal.refresh_from_db()
        self.assertEqual(with_feedback.reward, 1.0)
        # The missed outcome is captured before scoring
        self.assertEqual(with_terminal_item.outcome_metrics["finalStatus"], "DONE")
        self.assertEqual(with_terminal_item.reward_components["delayed"]["completionSuccess"], 1.0)
        self.assertIsNone(no_signal.reward)

    def test_sweep_respects_page_bound(self):
        for _ in range(3):
            create_decision(self.user, user_feedback="CONFIRMED")

        result = calculate_pending_rewards.apply(kwargs={"page_size": 1, "max_pages": 2}).get()

        self.assertEqual(result, {"processed": 2, "errors": 0})
        self.assertEqual(Decision.objects.pending_reward().count(), 1)

    def test_sweep_counts_failures_and_continues(self):
        create_decision(self.user, user_feedback="CONFIRMED")
        create_decision(self.user, user_feedback="CORRECTED")

        with patch.object(RewardEngine, "recompute_and_store", side_effect=RuntimeError("boom")):
            result = calculate_pending_rewards.apply(kwargs={"page_size": 1, "max_pages": 10}).get()

        self.assertEqual(result, {"processed": 0, "errors": 2})
        self.assertEqual(Decision.objects.pending_reward().count(), 2)

    def test_already_scored_decisions_are_not_pending(self):
        decision = create_decision(self.user, user_feedback="CONFIRMED")
        RewardEngine().recompute_and_store(decision.id)

        self.assertFalse(Decision.objects.pending_reward().exists())
        self.assertEqual(calculate_pending_rewards.apply().get(), {"processed": 0, "errors": 0})
