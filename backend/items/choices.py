# items/choices.py

from django.db import models
from django.utils.translation import gettext_lazy as _


class ItemStatus(models.TextChoices):
    INBOX = "INBOX", _("Inbox")
    BACKLOG = "BACKLOG", _("Backlog")
    TODO = "TODO", _("To Do")
    DOING = "DOING", _("Doing")
    BLOCKED = "BLOCKED", _("Blocked")
    IN_REVIEW = "IN_REVIEW", _("In Review")
    DONE = "DONE", _("Done")
    COLD_STORAGE = "COLD_STORAGE", _("Cold Storage")
    ARCHIVE = "ARCHIVE", _("Archive")


class Swimlane(models.TextChoices):
    EXPEDITE = "EXPEDITE", _("Expedite")
    PROJECT = "PROJECT", _("Project")
    HABIT = "HABIT", _("Habit")
    HOME = "HOME", _("Home")


class Priority(models.TextChoices):
    HIGH = "HIGH", _("High")
    MEDIUM = "MEDIUM", _("Medium")
    LOW = "LOW", _("Low")


# Once an item lands here its outcome is final and decisions about it can be scored.
TERMINAL_STATUSES = frozenset({ItemStatus.DONE, ItemStatus.COLD_STORAGE})

# The status where work on an item actually happens.
ACTIVE_STATUS = ItemStatus.DOING

# Moving from one of these back into TODO/DOING counts as a rework cycle.
REVIEWED_STATUSES = frozenset({ItemStatus.IN_REVIEW, ItemStatus.DONE})
REWORK_STATUSES = frozenset({ItemStatus.TODO, ItemStatus.DOING})
