import uuid

from django.db import models
from django.conf import settings
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from items.choices import TERMINAL_STATUSES
from .choices import AgentType, Feedback


class DecisionQuerySet(models.QuerySet):

    def for_agent(self, agent_type):
        return self.filter(agent_type=agent_type)

    def with_feedback(self):
        return self.filter(user_feedback__isnull=False)

    def pending_reward(self):
        """Decisions with a reward signal available but no reward computed yet."""
        return self.filter(reward__isnull=True).filter(
            Q(user_feedback__isnull=False)
            | Q(item__status__in=list(TERMINAL_STATUSES))
            | Q(outcome_observed_at__isnull=False)
        )

    def eligible_for_export(
        self,
        agent_type=None,
        min_reward=None,
        require_reward=False,
        require_feedback=False,
    ):
        qs = self.filter(is_training_data=True)
        if agent_type:
            qs = qs.filter(agent_type=agent_type)
        if require_reward:
            qs = qs.filter(reward__isnull=False)
            if min_reward is not None:
                qs = qs.filter(reward__gte=min_reward)
        if require_feedback:
            qs = qs.filter(user_feedback__isnull=False)
        return qs


class Decision(models.Model):
    """
    One logged AI agent decision: the observed state, the chosen action, and
    whatever feedback, outcome and reward get attached to it later.

    agent_type and model_version are fixed at creation. reward and
    reward_components are rewritten on every recomputation.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    agent_type = models.CharField(
        max_length=20,
        choices=AgentType.choices,
        verbose_name=_("agent type")
    )
    state = models.JSONField(verbose_name=_("state"))
    action = models.JSONField(verbose_name=_("action"))
    next_state = models.JSONField(null=True, blank=True, verbose_name=_("next state"))
    alternative_actions = models.JSONField(null=True, blank=True, verbose_name=_("alternative actions"))
    model_version = models.CharField(
        max_length=120,
        verbose_name=_("model version"),
        help_text=_("Tag of the model that produced the action, e.g. gpt-4.1-mini-20250101.")
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='decisions',
        verbose_name=_("user")
    )
    item = models.ForeignKey(
        'items.Item',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='decisions',
        verbose_name=_("item")
    )
    opus = models.ForeignKey(
        'items.Opus',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='decisions',
        verbose_name=_("opus")
    )

    confidence = models.FloatField(null=True, blank=True, verbose_name=_("confidence"))
    reasoning = models.TextField(null=True, blank=True, verbose_name=_("reasoning"))

    # Human review
    user_feedback = models.CharField(
        max_length=20,
        choices=Feedback.choices,
        null=True, blank=True,
        verbose_name=_("user feedback")
    )
    user_correction = models.JSONField(null=True, blank=True, verbose_name=_("user correction"))
    feedback_at = models.DateTimeField(null=True, blank=True, verbose_name=_("feedback at"))

    # Delayed outcome
    outcome_metrics = models.JSONField(default=dict, blank=True, verbose_name=_("outcome metrics"))
    outcome_observed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("outcome observed at"))

    # Reward engine output
    reward = models.FloatField(null=True, blank=True, verbose_name=_("reward"))
    reward_components = models.JSONField(null=True, blank=True, verbose_name=_("reward components"))
    reward_computed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("reward computed at"))

    is_training_data = models.BooleanField(default=True, verbose_name=_("is training data"))
    is_validation_data = models.BooleanField(default=False, verbose_name=_("is validation data"))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("created at"))

    objects = DecisionQuerySet.as_manager()

    class Meta:
        verbose_name = _("Decision")
        verbose_name_plural = _("Decisions")
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['agent_type', 'created_at'], name='decision_agent_created_idx'),
            models.Index(fields=['user', 'created_at'], name='decision_user_created_idx'),
            models.Index(fields=['reward'], name='decision_reward_idx'),
        ]

    def __str__(self):
        return f"{self.agent_type} decision {self.id}"

    @property
    def has_reward_signal(self) -> bool:
        """True once feedback or any outcome metric is attached."""
        return self.user_feedback is not None or bool(self.outcome_metrics)
