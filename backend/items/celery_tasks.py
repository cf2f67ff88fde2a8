# items/celery_tasks.py

import logging
from typing import Any, Dict, Optional

from celery import shared_task
from django.db import OperationalError, transaction

from decisions.choices import AgentType
from decisions.models import Decision
from decisions.recorder import get_model_version, record_decision

from .choices import ItemStatus
from .filer import URGENCY_TO_STATUS, ExternalAIFiler
from .models import Item, Opus
from .services import transition_item

# Configure logging for background worker monitoring
logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    retry_backoff_max=600,  # Max backoff of 10 minutes
    max_retries=3,
    time_limit=30,          # Hard limit for the task process
    soft_time_limit=25      # Soft limit to allow cleanup
)
def run_ai_filing(self, item_id: int, user_id: int) -> Optional[Dict[str, Any]]:
    """
    Worker: file a captured item with the AI Filer, apply the filing and log
    it as a FILER decision. Input = (item_id, user_id) only.

    A fallback filing (error_code set) changes nothing and is not recorded.
    """
    logger.info(f"AI filing started for Item {item_id} (user {user_id})")

    item = Item.objects.select_related('opus').filter(id=item_id, user_id=user_id).first()
    if not item:
        logger.warning(f"Item {item_id} not found. Exiting worker.")
        return None

    # Retries must not log a second decision for the same filing
    if Decision.objects.filter(item_id=item_id, agent_type=AgentType.FILER).exists():
        logger.info(f"Item {item_id} already filed. Skipping.")
        return None

    projects = list(Opus.objects.filter(user_id=user_id).values_list('name', flat=True))
    project = item.opus.name if item.opus else None
    instructions = item.raw_instructions or item.title

    filer = ExternalAIFiler()
    result = filer.file_item(instructions, item.routing_notes, project, projects)

    if result.get("error_code"):
        logger.warning(f"AI filing for Item {item_id} fell back: {result['error_code']}")
        return result

    action = {
        "swimlane": result["swimlane"],
        "priority": result["priority"],
        "labels": result["labels"],
        "urgency": result["urgency"],
    }

    with transaction.atomic():
        Item.objects.filter(id=item_id).update(
            swimlane=result["swimlane"],
            priority=result["priority"],
            labels=result["labels"],
        )
        # Only route items still waiting in the inbox; the user may have moved it already
        if item.status == ItemStatus.INBOX:
            transition_item(item_id, URGENCY_TO_STATUS[result["urgency"]])

        decision = record_decision(
            agent_type=AgentType.FILER,
            state=ExternalAIFiler.build_state(instructions, item.routing_notes, project, projects),
            action=action,
            user_id=user_id,
            model_version=get_model_version(filer.model),
            item_id=item_id,
            opus_id=item.opus_id,
        )

    logger.info(f"AI filing persisted for Item {item_id} as decision {decision.id}")
    return {**action, "decision_id": str(decision.id)}
