# items/filer.py
"""
AI Filer
========

Service layer that turns a captured item's free-form instructions into a
filing decision (swimlane, priority, labels, urgency) via the OpenAI API.

This module is a pure service with NO Django ORM dependencies. Persisting the
result and recording the agent decision happen in items.celery_tasks.

Error Codes:
------------
- error_code absent: the response came from the model
- error_code present: the filing is a fallback and must not be recorded
  as an agent decision
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    OpenAI,
    RateLimitError,
)

from .choices import ItemStatus, Priority, Swimlane

logger = logging.getLogger(__name__)


FILER_SYSTEM_PROMPT = """
You are the "Filer" AI for a personal project management system (OS - Organization Strategy). Your job is to act as a natural language parser.
You will be given the human's original Instructions, any supplemental routing notes, the project this item was routed to,
and the list of all known projects.

Return a single JSON object with the keys: "swimlane", "priority", "labels", and "urgency".

Rules:
1. swimlane (string):
   - "Expedite": if instructions imply urgency, external interrupt, bug, stakeholder request, or "wife" task.
   - "Home": if instructions imply a domestic or personal errand.
   - "Habit": if instructions imply a recurring personal development task (study, content creation, etc.).
   - "Project": default for standard project-related work.
2. priority (string):
   - "High" if swimlane is "Expedite" or "Home".
   - "Medium" if swimlane is "Project".
   - "Low" if swimlane is "Habit".
3. labels (array of strings):
   - Add "Job 1 (Income)" if instructions reference Latina, AI Refill, IngePro, Tragaldabas, or Candidatos.
   - Add "Job 2 (Authority)" if instructions reference Portfolio, GitHub Green, Data Science, or Content Creation.
   - Add the matching project name if instructions reference a known project.
4. urgency (string):
   - Must be either "To Do" or "On Hold". Pick "To Do" for items that should move forward immediately; otherwise "On Hold".

You must return only the raw JSON object. Do not include Markdown, commentary, or additional text.
""".strip()

# Where a filed item lands, keyed by the model's urgency answer
URGENCY_TO_STATUS = {
    "To Do": ItemStatus.TODO,
    "On Hold": ItemStatus.BACKLOG,
}


class ExternalAIFiler:
    """
    Files captured items into a swimlane/priority/labels triple.

    Uses DEFERRED INITIALIZATION: a missing API key does not raise during
    __init__; file_item() returns an error-coded fallback instead.

    Example:
        >>> filer = ExternalAIFiler()
        >>> result = filer.file_item("Fix the GitHub Green streak", projects=["Portfolio"])
        >>> if "error_code" not in result:
        ...     apply(result)
    """

    DEFAULT_TEMPERATURE: float = 0.2
    DEFAULT_MAX_TOKENS: int = 400
    DEFAULT_TIMEOUT: float = 10.0  # Seconds

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        **client_kwargs: Any,
    ) -> None:
        self.model: str = model or getattr(settings, "FILER_MODEL", "gpt-4.1-mini")
        self.timeout: float = timeout or self.DEFAULT_TIMEOUT
        self._client_kwargs: Dict[str, Any] = client_kwargs

        self.api_key: Optional[str] = None
        self.client: Optional[OpenAI] = None
        self.is_configured: bool = False
        self.configuration_error: Optional[str] = None

        self._configure(api_key)

    def _configure(self, api_key: Optional[str] = None) -> None:
        resolved_key = api_key or getattr(settings, "OPENAI_API_KEY", None) or ""
        if not resolved_key:
            self.configuration_error = (
                "OPENAI_API_KEY is not configured. "
                "Set the OPENAI_API_KEY environment variable or Django setting."
            )
            logger.warning(f"ExternalAIFiler: {self.configuration_error}")
            return

        try:
            self.api_key = resolved_key
            self.client = OpenAI(api_key=self.api_key, **self._client_kwargs)
            self.is_configured = True
            self.configuration_error = None
        except Exception as e:
            self.configuration_error = f"Failed to initialize OpenAI client: {str(e)}"
            logger.error(f"ExternalAIFiler: {self.configuration_error}")
            self.client = None
            self.is_configured = False

    def file_item(
        self,
        instructions: str,
        routing_notes: Optional[str] = None,
        project: Optional[str] = None,
        projects: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Ask the model to file one item.

        Returns:
            {
                "swimlane": "EXPEDITE" | "PROJECT" | "HABIT" | "HOME",
                "priority": "HIGH" | "MEDIUM" | "LOW",
                "labels": [str, ...],
                "urgency": "To Do" | "On Hold",
            }
            or, on any failure, an empty filing with "error_code" and "error_message".
        """
        if not self.is_configured or self.client is None:
            return self._get_error_response(
                error_code="FILER_NOT_CONFIGURED",
                error_message=self.configuration_error or "Filer not available",
            )

        messages = self._build_messages(
            self.build_state(instructions, routing_notes, project, projects)
        )

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.DEFAULT_TEMPERATURE,
                max_tokens=self.DEFAULT_MAX_TOKENS,
                response_format={"type": "json_object"},
                timeout=self.timeout,
            )
            raw_content: str = response.choices[0].message.content or ""
            result = self._validate_and_parse_response(raw_content)
            logger.info(
                f"ExternalAIFiler: filed into {result['swimlane']}/{result['priority']} "
                f"with labels {result['labels']}"
            )
            return result

        except AuthenticationError as e:
            logger.error(f"OpenAI authentication failed: {e}")
            return self._get_error_response("AUTH_ERROR", "Invalid API key or authentication failed")

        except RateLimitError as e:
            logger.warning(f"OpenAI rate limit exceeded: {e}")
            return self._get_error_response("RATE_LIMIT", "API rate limit exceeded, please retry later")

        except APITimeoutError as e:
            logger.warning(f"OpenAI API timeout: {e}")
            return self._get_error_response("TIMEOUT", "API request timed out")

        except APIConnectionError as e:
            logger.error(f"OpenAI connection error: {e}")
            return self._get_error_response("CONNECTION_ERROR", "Could not connect to OpenAI API")

        except BadRequestError as e:
            logger.error(f"OpenAI bad request: {e}")
            return self._get_error_response("BAD_REQUEST", "Invalid request to OpenAI API")

        except APIStatusError as e:
            logger.error(f"OpenAI API status error: {e.status_code} - {e}")
            return self._get_error_response(
                f"API_ERROR_{e.status_code}", f"OpenAI API error (status {e.status_code})"
            )

        except json.JSONDecodeError as e:
            logger.error(f"Failed to decode Filer response as JSON: {e}")
            return self._get_error_response("JSON_PARSE_ERROR", "AI returned invalid JSON response")

        except ValueError as e:
            logger.error(f"Filer response validation failed: {e}")
            return self._get_error_response("VALIDATION_ERROR", str(e))

    @staticmethod
    def build_state(
        instructions: str,
        routing_notes: Optional[str] = None,
        project: Optional[str] = None,
        projects: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """The observation the Filer acts on; also recorded as the decision state."""
        return {
            "instructions": instructions,
            "routingNotes": routing_notes,
            "project": project,
            "knownProjects": list(projects or []),
        }

    def _build_messages(self, state: Dict[str, Any]) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": FILER_SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps(state)},
        ]

    def _validate_and_parse_response(self, raw_json: str) -> Dict[str, Any]:
        """
        Parse the model output and normalize it onto the item choices.

        Raises:
            ValueError: empty response, unknown swimlane/priority, bad labels or urgency.
        """
        if not raw_json:
            raise ValueError("Empty response from AI")

        data = json.loads(raw_json)

        swimlane = str(data.get("swimlane", "")).strip().upper()
        priority = str(data.get("priority", "")).strip().upper()
        labels = data.get("labels")
        urgency = data.get("urgency")

        if swimlane not in Swimlane.values:
            raise ValueError(f"Unknown swimlane: {data.get('swimlane')!r}")
        if priority not in Priority.values:
            raise ValueError(f"Unknown priority: {data.get('priority')!r}")
        if not isinstance(labels, list):
            raise ValueError("labels must be a list")
        if urgency not in URGENCY_TO_STATUS:
            raise ValueError(f"Invalid urgency: {urgency!r}")

        return {
            "swimlane": swimlane,
            "priority": priority,
            "labels": [str(label) for label in labels],
            "urgency": urgency,
        }

    def _get_error_response(self, error_code: str, error_message: str) -> Dict[str, Any]:
        return {
            "swimlane": None,
            "priority": None,
            "labels": [],
            "urgency": None,
            "error_code": error_code,
            "error_message": error_message,
        }

    def health_check(self) -> Dict[str, Any]:
        return {
            "is_configured": self.is_configured,
            "model": self.model,
            "timeout": self.timeout,
            "configuration_error": self.configuration_error,
        }
