# items/services.py

import logging
from datetime import datetime
from typing import Optional

from django.db import transaction
from django.utils import timezone

from .choices import (
    ACTIVE_STATUS,
    REVIEWED_STATUSES,
    REWORK_STATUSES,
    TERMINAL_STATUSES,
    ItemStatus,
)
from .models import Item, StatusChange
from .signals import item_reached_terminal_status

logger = logging.getLogger(__name__)


def _minutes_between(start: Optional[datetime], end: datetime) -> float:
    if start is None:
        return 0.0
    return max(0.0, (end - start).total_seconds() / 60.0)


def transition_item(item_id: int, new_status: str, changed_by=None, now: Optional[datetime] = None) -> Item:
    """
    Move an item to a new status and keep its lifecycle bookkeeping in sync.

    Runs under a row lock so concurrent moves of the same item serialize.
    When the new status is terminal, item_reached_terminal_status is sent
    after the surrounding transaction commits; receivers can therefore
    rely on the committed item state.

    Re-applying the current status is a no-op.
    """
    new_status = ItemStatus(new_status)
    if now is None:
        now = timezone.now()

    with transaction.atomic():
        item = Item.objects.select_for_update().get(id=item_id)
        previous = item.status

        if previous == new_status:
            return item

        update_fields = ['status', 'status_changed_at', 'updated_at']

        # Leaving the active column: bank the time spent working on it
        if previous == ACTIVE_STATUS:
            worked = _minutes_between(item.status_changed_at or item.started_at, now)
            item.total_time_in_create = (item.total_time_in_create or 0.0) + worked
            update_fields.append('total_time_in_create')

        if previous in REVIEWED_STATUSES and new_status in REWORK_STATUSES:
            item.cycle_count += 1
            update_fields.append('cycle_count')

        if new_status == ItemStatus.DOING and not item.started_at:
            item.started_at = now
            update_fields.append('started_at')
        if new_status == ItemStatus.DONE and not item.completed_at:
            item.completed_at = now
            update_fields.append('completed_at')
        if new_status == ItemStatus.BLOCKED and not item.blocked_at:
            item.blocked_at = now
            update_fields.append('blocked_at')

        item.status = new_status
        item.status_changed_at = now
        item.save(update_fields=update_fields)

        StatusChange.objects.create(
            item=item,
            from_status=previous,
            to_status=new_status,
            changed_by=changed_by,
        )

        logger.info(f"Item {item.id} moved {previous} -> {new_status}")

        if new_status in TERMINAL_STATUSES:
            transaction.on_commit(
                lambda: item_reached_terminal_status.send(
                    sender=Item, item_id=item.id, status=new_status.value
                )
            )

    return item
