# decisions/outcomes.py

from typing import Any, Dict

from items.choices import ItemStatus


def build_outcome_metrics(item) -> Dict[str, Any]:
    """
    Snapshot of an item's lifecycle as outcome metrics (camelCase, JSON-safe).

    Fields the item never recorded are left out so they score as neutral.
    """
    metrics: Dict[str, Any] = {
        "finalStatus": item.status,
        "completedSuccessfully": item.status == ItemStatus.DONE,
        "cycleCount": item.cycle_count,
    }

    if item.blocked_at:
        metrics["blockedAt"] = item.blocked_at.isoformat()
    if item.total_time_in_create is not None:
        metrics["totalTimeInCreate"] = item.total_time_in_create
    if item.started_at and item.completed_at:
        metrics["timeToComplete"] = max(0.0, (item.completed_at - item.started_at).total_seconds() / 60.0)
    if item.swimlane:
        metrics["swimlane"] = item.swimlane
    if item.priority:
        metrics["priority"] = item.priority

    return metrics
