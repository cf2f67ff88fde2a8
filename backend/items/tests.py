# items/tests.py
"""
Items App Test Suite
====================

Test Categories:
----------------
1. Transition Tests - lifecycle bookkeeping maintained by transition_item
2. Filer Tests - OpenAI-backed filing with mocked responses and failures
3. Filing Worker Tests - run_ai_filing applies the filing and logs a decision
4. Items API Tests - capture, board moves and ownership
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from decisions.models import Decision

from .celery_tasks import run_ai_filing
from .choices import ItemStatus
from .filer import ExternalAIFiler
from .models import Item, Opus, StatusChange
from .services import transition_item

User = get_user_model()

T0 = datetime(2024, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


def create_test_user(username: str = "testuser") -> User:
    """Create a test user with unique username."""
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="testpass123",
    )


def create_mock_openai_response(payload) -> MagicMock:
    """Mock chat completion whose message content is the given JSON payload."""
    mock_choice = MagicMock()
    mock_choice.message.content = payload if isinstance(payload, str) else json.dumps(payload)

    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    return mock_response


FILING = {
    "swimlane": "Project",
    "priority": "Medium",
    "labels": ["Job 2 (Authority)", "Portfolio"],
    "urgency": "To Do",
}


# ===========================================================================
# TRANSITION TESTS
# ===========================================================================


class TransitionItemTest(TestCase):

    def setUp(self):
        self.user = create_test_user()
        self.item = Item.objects.create(user=self.user, title="Write case study")

    def test_time_in_doing_accumulates(self):
        transition_item(self.item.id, ItemStatus.DOING, now=T0)
        transition_item(self.item.id, ItemStatus.TODO, now=T0 + timedelta(minutes=45))
        transition_item(self.item.id, ItemStatus.DOING, now=T0 + timedelta(minutes=100))
        item = transition_item(self.item.id, ItemStatus.IN_REVIEW, now=T0 + timedelta(minutes=115))

        self.assertAlmostEqual(item.total_time_in_create, 60.0)
        self.assertEqual(item.started_at, T0)
        # Going back to the to-do column from DOING is not rework
        self.assertEqual(item.cycle_count, 0)

    def test_rework_after_review_increments_cycle_count(self):
        transition_item(self.item.id, ItemStatus.IN_REVIEW, now=T0)
        transition_item(self.item.id, ItemStatus.DOING, now=T0 + timedelta(minutes=5))
        transition_item(self.item.id, ItemStatus.DONE, now=T0 + timedelta(minutes=10))
        item = transition_item(self.item.id, ItemStatus.TODO, now=T0 + timedelta(minutes=15))

        self.assertEqual(item.cycle_count, 2)

    def test_lifecycle_timestamps_are_set_once(self):
        transition_item(self.item.id, ItemStatus.BLOCKED, now=T0)
        transition_item(self.item.id, ItemStatus.DOING, now=T0 + timedelta(minutes=1))
        transition_item(self.item.id, ItemStatus.BLOCKED, now=T0 + timedelta(minutes=2))
        item = transition_item(self.item.id, ItemStatus.DONE, now=T0 + timedelta(minutes=3))

        self.assertEqual(item.blocked_at, T0)
        self.assertEqual(item.completed_at, T0 + timedelta(minutes=3))
        self.assertTrue(item.is_terminal)

    def test_same_status_is_a_noop(self):
        transition_item(self.item.id, ItemStatus.DOING, now=T0)
        transition_item(self.item.id, ItemStatus.DOING, now=T0 + timedelta(minutes=30))

        self.assertEqual(StatusChange.objects.filter(item=self.item).count(), 1)

    def test_status_changes_are_audited(self):
        transition_item(self.item.id, ItemStatus.TODO, changed_by=self.user)
        transition_item(self.item.id, ItemStatus.DOING, changed_by=self.user)

        changes = list(StatusChange.objects.filter(item=self.item).values_list('from_status', 'to_status'))
        self.assertEqual(changes, [("INBOX", "TODO"), ("TODO", "DOING")])

    def test_unknown_status_rejected(self):
        with self.assertRaises(ValueError):
            transition_item(self.item.id, "SOMEDAY")


# ===========================================================================
# FILER TESTS
# ===========================================================================


class TestExternalAIFiler(TestCase):

    def test_filer_initializes_without_api_key(self) -> None:
        """Filer should initialize without raising even if no API key is present."""
        with override_settings(OPENAI_API_KEY=None):
            filer = ExternalAIFiler()
            self.assertFalse(filer.is_configured)
            self.assertIsNotNone(filer.configuration_error)

    def test_filer_returns_fallback_when_not_configured(self) -> None:
        with override_settings(OPENAI_API_KEY=None):
            result = ExternalAIFiler().file_item("Call the plumber")

        self.assertEqual(result["error_code"], "FILER_NOT_CONFIGURED")
        self.assertIsNone(result["swimlane"])
        self.assertEqual(result["labels"], [])

    @patch("items.filer.OpenAI")
    def test_filer_normalizes_model_output(self, mock_openai_class: MagicMock) -> None:
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.chat.completions.create.return_value = create_mock_openai_response(FILING)

        filer = ExternalAIFiler(api_key="test-key", model="gpt-4.1-mini")
        result = filer.file_item("Update the portfolio site", projects=["Portfolio"])

        self.assertNotIn("error_code", result)
        self.assertEqual(result["swimlane"], "PROJECT")
        self.assertEqual(result["priority"], "MEDIUM")
        self.assertEqual(result["labels"], ["Job 2 (Authority)", "Portfolio"])
        self.assertEqual(result["urgency"], "To Do")

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4.1-mini")
        self.assertEqual(kwargs["response_format"], {"type": "json_object"})
        state = json.loads(kwargs["messages"][1]["content"])
        self.assertEqual(state["knownProjects"], ["Portfolio"])

    @patch("items.filer.OpenAI")
    def test_filer_rejects_unknown_swimlane(self, mock_openai_class: MagicMock) -> None:
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.chat.completions.create.return_value = create_mock_openai_response(
            {**FILING, "swimlane": "Garden"}
        )

        result = ExternalAIFiler(api_key="test-key").file_item("Plant tomatoes")

        self.assertEqual(result["error_code"], "VALIDATION_ERROR")

    @patch("items.filer.OpenAI")
    def test_filer_handles_invalid_json(self, mock_openai_class: MagicMock) -> None:
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.chat.completions.create.return_value = create_mock_openai_response("not json")

        result = ExternalAIFiler(api_key="test-key").file_item("Anything")

        self.assertEqual(result["error_code"], "JSON_PARSE_ERROR")

    @patch("items.filer.OpenAI")
    def test_filer_handles_api_timeout(self, mock_openai_class: MagicMock) -> None:
        from openai import APITimeoutError

        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.chat.completions.create.side_effect = APITimeoutError(request=MagicMock())

        result = ExternalAIFiler(api_key="test-key").file_item("Anything")

        self.assertEqual(result["error_code"], "TIMEOUT")

    def test_filer_health_check(self) -> None:
        with override_settings(OPENAI_API_KEY=None):
            health = ExternalAIFiler(model="gpt-4.1-mini").health_check()

        self.assertFalse(health["is_configured"])
        self.assertEqual(health["model"], "gpt-4.1-mini")


# ===========================================================================
# FILING WORKER TESTS
# ===========================================================================


@override_settings(OPENAI_API_KEY="test-key", FILER_MODEL="gpt-4.1-mini")
class RunAIFilingTest(TestCase):

    def setUp(self):
        self.user = create_test_user()
        self.opus = Opus.objects.create(user=self.user, name="Portfolio")
        Opus.objects.create(user=self.user, name="IngePro")
        self.item = Item.objects.create(
            user=self.user,
            opus=self.opus,
            title="Portfolio refresh",
            raw_instructions="Refresh the portfolio landing page",
            routing_notes="before the interview",
        )

    def mock_filer_response(self, mock_openai_class, payload=FILING):
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.chat.completions.create.return_value = create_mock_openai_response(payload)
        return mock_client

    @patch("items.filer.OpenAI")
    def test_filing_is_applied_and_recorded(self, mock_openai_class):
        self.mock_filer_response(mock_openai_class)

        result = run_ai_filing.apply(args=[self.item.id, self.user.id]).get()

        self.item.refresh_from_db()
        self.assertEqual(self.item.swimlane, "PROJECT")
        self.assertEqual(self.item.priority, "MEDIUM")
        self.assertEqual(self.item.labels, ["Job 2 (Authority)", "Portfolio"])
        self.assertEqual(self.item.status, ItemStatus.TODO)

        decision = Decision.objects.get(item=self.item)
        self.assertEqual(str(decision.id), result["decision_id"])
        self.assertEqual(decision.agent_type, "FILER")
        self.assertEqual(decision.opus_id, self.opus.id)
        self.assertEqual(decision.state["instructions"], "Refresh the portfolio landing page")
        self.assertEqual(decision.state["routingNotes"], "before the interview")
        self.assertEqual(decision.state["project"], "Portfolio")
        self.assertEqual(sorted(decision.state["knownProjects"]), ["IngePro", "Portfolio"])
        self.assertEqual(decision.action["swimlane"], "PROJECT")
        self.assertRegex(decision.model_version, r"^gpt-4\.1-mini-\d{8}$")
        self.assertIsNone(decision.reward)

    @patch("items.filer.OpenAI")
    def test_on_hold_filing_goes_to_backlog(self, mock_openai_class):
        self.mock_filer_response(mock_openai_class, {**FILING, "urgency": "On Hold"})

        run_ai_filing.apply(args=[self.item.id, self.user.id]).get()

        self.item.refresh_from_db()
        self.assertEqual(self.item.status, ItemStatus.BACKLOG)

    @patch("items.filer.OpenAI")
    def test_moved_item_keeps_its_status(self, mock_openai_class):
        self.mock_filer_response(mock_openai_class)
        transition_item(self.item.id, ItemStatus.DOING)

        run_ai_filing.apply(args=[self.item.id, self.user.id]).get()

        self.item.refresh_from_db()
        self.assertEqual(self.item.status, ItemStatus.DOING)
        self.assertEqual(self.item.swimlane, "PROJECT")

    @patch("items.filer.OpenAI")
    def test_retry_does_not_record_twice(self, mock_openai_class):
        mock_client = self.mock_filer_response(mock_openai_class)

        run_ai_filing.apply(args=[self.item.id, self.user.id]).get()
        self.assertIsNone(run_ai_filing.apply(args=[self.item.id, self.user.id]).get())

        self.assertEqual(Decision.objects.filter(item=self.item).count(), 1)
        self.assertEqual(mock_client.chat.completions.create.call_count, 1)

    @patch("items.filer.OpenAI")
    def test_fallback_filing_is_not_recorded(self, mock_openai_class):
        self.mock_filer_response(mock_openai_class, "oops")

        result = run_ai_filing.apply(args=[self.item.id, self.user.id]).get()

        self.assertEqual(result["error_code"], "JSON_PARSE_ERROR")
        self.assertFalse(Decision.objects.filter(item=self.item).exists())
        self.item.refresh_from_db()
        self.assertEqual(self.item.status, ItemStatus.INBOX)

    def test_wrong_user_returns_none(self):
        other = create_test_user("other")
        self.assertIsNone(run_ai_filing.apply(args=[self.item.id, other.id]).get())


# ===========================================================================
# ITEMS API TESTS
# ===========================================================================


class ItemAPITest(APITestCase):

    def setUp(self):
        self.user = create_test_user()
        self.client.force_authenticate(user=self.user)

    @patch("items.celery_tasks.run_ai_filing.delay")
    def test_capture_enqueues_filing_after_commit(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                "/api/v1/items/",
                {"title": "Fix the GitHub Green streak", "raw_instructions": "Push daily", "status": "DONE"},
                format="json",
            )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        # Captured items always start in the inbox
        self.assertEqual(response.data["status"], "INBOX")
        mock_delay.assert_called_once_with(response.data["id"], self.user.id)

    @patch("items.celery_tasks.run_ai_filing.delay")
    def test_pre_filed_capture_skips_filer(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                "/api/v1/items/", {"title": "Laundry", "swimlane": "HOME", "priority": "HIGH"}, format="json"
            )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        mock_delay.assert_not_called()

    def test_status_patch_goes_through_transition(self):
        item = Item.objects.create(user=self.user, title="Case study", status=ItemStatus.DOING)

        response = self.client.patch(f"/api/v1/items/{item.id}/", {"status": "DONE"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "DONE")
        self.assertIsNotNone(response.data["completed_at"])
        self.assertTrue(StatusChange.objects.filter(item=item, to_status="DONE").exists())

    def test_lifecycle_fields_are_read_only(self):
        item = Item.objects.create(user=self.user, title="Case study")

        self.client.patch(f"/api/v1/items/{item.id}/", {"cycle_count": 9}, format="json")

        item.refresh_from_db()
        self.assertEqual(item.cycle_count, 0)

    def test_items_are_private(self):
        foreign = Item.objects.create(user=create_test_user("other"), title="Secret")

        self.assertEqual(self.client.get(f"/api/v1/items/{foreign.id}/").status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(len(self.client.get("/api/v1/items/").data), 0)

    def test_list_filters_by_status(self):
        Item.objects.create(user=self.user, title="A", status=ItemStatus.TODO)
        Item.objects.create(user=self.user, title="B", status=ItemStatus.DONE)

        response = self.client.get("/api/v1/items/", {"status": "TODO"})

        self.assertEqual([row["title"] for row in response.data], ["A"])

    def test_opus_of_another_user_rejected(self):
        foreign_opus = Opus.objects.create(user=create_test_user("other"), name="Theirs")

        response = self.client.post(
            "/api/v1/items/", {"title": "Sneaky", "swimlane": "HOME", "opus": foreign_opus.id}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_archived_items_can_be_deleted(self):
        active = Item.objects.create(user=self.user, title="Still going", status=ItemStatus.DOING)
        archived = Item.objects.create(user=self.user, title="Old", status=ItemStatus.ARCHIVE)

        self.assertEqual(self.client.delete(f"/api/v1/items/{active.id}/").status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Item.objects.filter(id=active.id).exists())

        self.assertEqual(self.client.delete(f"/api/v1/items/{archived.id}/").status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Item.objects.filter(id=archived.id).exists())
