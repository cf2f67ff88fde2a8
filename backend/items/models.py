from django.db import models
from django.conf import settings
from django.utils.translation import gettext_lazy as _

from .choices import ItemStatus, Priority, Swimlane, TERMINAL_STATUSES


class Opus(models.Model):
    """
    A project container ("opus") that items and agent decisions can belong to.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='opuses',
        verbose_name=_("user")
    )
    name = models.CharField(max_length=255, verbose_name=_("name"))
    description = models.TextField(blank=True, verbose_name=_("description"))
    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    class Meta:
        verbose_name = _("Opus")
        verbose_name_plural = _("Opuses")
        ordering = ['name']

    def __str__(self):
        return self.name


class Item(models.Model):
    """
    A captured piece of work moving through the capture -> route -> workflow lifecycle.

    Status changes must go through items.services.transition_item so that the
    lifecycle timestamps, the rework counter and the terminal-status event stay
    consistent.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_("user")
    )
    opus = models.ForeignKey(
        Opus,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='items',
        verbose_name=_("opus")
    )

    title = models.CharField(max_length=255, verbose_name=_("title"))
    raw_instructions = models.TextField(blank=True, verbose_name=_("raw instructions"))
    routing_notes = models.TextField(null=True, blank=True, verbose_name=_("routing notes"))
    notes = models.TextField(null=True, blank=True, verbose_name=_("notes"))

    status = models.CharField(
        max_length=20,
        choices=ItemStatus.choices,
        default=ItemStatus.INBOX,
        verbose_name=_("status")
    )
    swimlane = models.CharField(
        max_length=20,
        choices=Swimlane.choices,
        null=True, blank=True,
        verbose_name=_("swimlane")
    )
    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        null=True, blank=True,
        verbose_name=_("priority")
    )
    labels = models.JSONField(default=list, blank=True, verbose_name=_("labels"))

    # Lifecycle bookkeeping, maintained by transition_item
    cycle_count = models.PositiveIntegerField(
        default=0,
        verbose_name=_("cycle count"),
        help_text=_("Times the item went back to work after review or completion.")
    )
    total_time_in_create = models.FloatField(
        null=True, blank=True,
        verbose_name=_("total time in create"),
        help_text=_("Minutes spent in the DOING status.")
    )
    started_at = models.DateTimeField(null=True, blank=True, verbose_name=_("started at"))
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("completed at"))
    blocked_at = models.DateTimeField(null=True, blank=True, verbose_name=_("blocked at"))
    status_changed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("status changed at"))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("Item")
        verbose_name_plural = _("Items")
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'status', 'completed_at'], name='item_user_status_done_idx'),
        ]

    def __str__(self):
        return f"Item for {self.user}: {self.title}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class StatusChange(models.Model):
    """Audit row written for every status transition of an item."""
    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name='status_changes')
    from_status = models.CharField(max_length=20, choices=ItemStatus.choices)
    to_status = models.CharField(max_length=20, choices=ItemStatus.choices)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.item_id}: {self.from_status} -> {self.to_status}"
