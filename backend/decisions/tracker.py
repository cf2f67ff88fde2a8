# decisions/tracker.py

import logging

from django.dispatch import receiver

from items.models import Item
from items.signals import item_reached_terminal_status

from .reward_engine.celery_tasks import track_item_outcome

logger = logging.getLogger(__name__)


@receiver(item_reached_terminal_status, sender=Item, dispatch_uid="decisions.track_item_outcome")
def enqueue_outcome_tracking(sender, item_id, status, **kwargs):
    """Hand the terminal item to the outcome worker. The send happens after commit."""
    logger.info(f"Item {item_id} reached {status}; enqueueing outcome tracking")
    track_item_outcome.delay(item_id)
