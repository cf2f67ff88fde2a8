from typing import Optional

from items.choices import Priority, Swimlane

# Expected minutes of active work per swimlane, from historical averages
BASE_MINUTES = {
    Swimlane.EXPEDITE.value: 120,  # 2 hours
    Swimlane.PROJECT.value: 480,   # 8 hours
    Swimlane.HABIT.value: 60,      # 1 hour
    Swimlane.HOME.value: 180,      # 3 hours
}
DEFAULT_BASE_MINUTES = 480

PRIORITY_MULTIPLIER = {
    Priority.HIGH.value: 0.8,
    Priority.MEDIUM.value: 1.0,
    Priority.LOW.value: 1.2,
}

# actual/expected ratios bounding the time efficiency bonus and penalty
FAST_RATIO = 1.2
SLOW_RATIO = 2.0


def expected_minutes(swimlane: Optional[str], priority: Optional[str]) -> float:
    """
    Expected minutes an item should spend in the active column.

    Unknown or missing swimlane falls back to the PROJECT baseline;
    unknown or missing priority uses a neutral multiplier.
    """
    base = BASE_MINUTES.get(str(swimlane).upper(), DEFAULT_BASE_MINUTES) if swimlane else DEFAULT_BASE_MINUTES
    multiplier = PRIORITY_MULTIPLIER.get(str(priority).upper(), 1.0) if priority else 1.0
    return base * multiplier


def time_efficiency(actual_minutes: Optional[float], swimlane: Optional[str], priority: Optional[str]) -> float:
    """
    +0.5 when the item finished within FAST_RATIO of its expected duration,
    -0.5 beyond SLOW_RATIO, 0.0 in between or with no recorded time.
    """
    if not actual_minutes:
        return 0.0

    ratio = float(actual_minutes) / expected_minutes(swimlane, priority)

    if ratio < FAST_RATIO:
        return 0.5
    if ratio > SLOW_RATIO:
        return -0.5
    return 0.0
