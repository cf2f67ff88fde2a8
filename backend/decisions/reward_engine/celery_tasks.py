# decisions/reward_engine/celery_tasks.py

import logging
from typing import Any, Dict, Optional

from celery import shared_task
from django.conf import settings
from django.db import OperationalError

from items.models import Item

from ..models import Decision
from ..outcomes import build_outcome_metrics
from ..recorder import record_outcome
from .engine import RewardEngine

# Configure logging for background worker monitoring
logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_PAGES = 10


@shared_task(
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    retry_backoff_max=600,
    max_retries=3,
)
def recompute_decision_reward(decision_id: str) -> Optional[float]:
    """Worker: full reward recompute for one decision. Returns the new reward."""
    try:
        result = RewardEngine().recompute_and_store(decision_id)
    except Decision.DoesNotExist:
        logger.warning(f"Decision {decision_id} not found. Exiting worker.")
        return None
    return result.reward


@shared_task(
    bind=True,
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    retry_backoff_max=600,  # Max backoff of 10 minutes
    max_retries=5,
)
def track_item_outcome(self, item_id: int) -> Optional[Dict[str, Any]]:
    """
    Worker: an item reached a terminal status. Snapshot its lifecycle into
    every linked decision's outcome metrics and recompute their rewards.

    Safe to run more than once for the same item: the snapshot is merged
    and the reward is always recomputed from scratch.
    """
    logger.info(f"Outcome tracking started for Item {item_id}")

    item = Item.objects.filter(id=item_id).first()
    if not item:
        logger.warning(f"Item {item_id} not found. Exiting worker.")
        return None
    if not item.is_terminal:
        logger.warning(f"Item {item_id} is {item.status}, not terminal. Skipping outcome tracking.")
        return None

    metrics = build_outcome_metrics(item)
    processed, errors = 0, 0

    for decision_id in Decision.objects.filter(item_id=item_id).values_list("id", flat=True):
        try:
            record_outcome(decision_id, metrics)
            processed += 1
        except OperationalError:
            # Database unavailable: let Celery retry the whole item
            raise
        except Exception as exc:
            errors += 1
            logger.exception(f"Outcome tracking failed for decision {decision_id} (Item {item_id}): {exc}")

    logger.info(f"Outcome tracking finished for Item {item_id}: {processed} processed, {errors} errors")
    return {"processed": processed, "errors": errors}


@shared_task
def calculate_pending_rewards(page_size: Optional[int] = None, max_pages: Optional[int] = None) -> Dict[str, int]:
    """
    Sweep decisions that have a reward signal but no reward yet.

    Runs in bounded pages. A failing decision is logged, counted and skipped
    for the rest of the sweep; it never aborts the batch.

    Decisions whose item is already terminal but whose outcome was never
    tracked get the item snapshot first.
    """
    page_size = page_size or getattr(settings, "REWARD_BATCH_PAGE_SIZE", DEFAULT_PAGE_SIZE)
    max_pages = max_pages or getattr(settings, "REWARD_BATCH_MAX_PAGES", DEFAULT_MAX_PAGES)

    engine = RewardEngine()
    processed, errors = 0, 0
    failed_ids = set()

    for page in range(max_pages):
        batch = list(
            Decision.objects.pending_reward()
            .exclude(pk__in=failed_ids)
            .select_related("item")
            .order_by("created_at", "id")[:page_size]
        )
        if not batch:
            break

        for decision in batch:
            try:
                if decision.item is not None and decision.item.is_terminal and decision.outcome_observed_at is None:
                    record_outcome(decision.id, build_outcome_metrics(decision.item))
                else:
                    engine.recompute_and_store(decision.id)
                processed += 1
            except Exception as exc:
                errors += 1
                failed_ids.add(decision.id)
                logger.exception(f"Reward calculation failed for decision {decision.id}: {exc}")

        logger.info(f"Pending rewards page {page + 1}: {len(batch)} decisions")

    logger.info(f"Pending reward sweep finished: {processed} processed, {errors} errors")
    return {"processed": processed, "errors": errors}
