# decisions/serializers.py

from rest_framework import serializers

from .choices import AgentType, Feedback
from .export import ALLOWED_ORDERINGS, DEFAULT_LIMIT, DEFAULT_MIN_REWARD, DEFAULT_ORDERING
from .models import Decision


class DecisionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Decision
        fields = [
            'id', 'agent_type', 'state', 'action', 'next_state', 'alternative_actions',
            'model_version', 'item', 'opus', 'confidence', 'reasoning',
            'user_feedback', 'user_correction', 'feedback_at',
            'outcome_metrics', 'outcome_observed_at',
            'reward', 'reward_components', 'reward_computed_at',
            'is_training_data', 'is_validation_data', 'created_at'
        ]
        # The ledger is written through decisions.recorder, never through this serializer
        read_only_fields = fields


class FeedbackSerializer(serializers.Serializer):
    feedback = serializers.ChoiceField(choices=Feedback.choices)
    correction = serializers.JSONField(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs.get('correction') is not None and not isinstance(attrs['correction'], dict):
            raise serializers.ValidationError({"correction": "correction must be an object shaped like the action."})
        return attrs


class OutcomeSerializer(serializers.Serializer):
    metrics = serializers.DictField(allow_empty=False)


class TrainingExportQuerySerializer(serializers.Serializer):
    agentType = serializers.ChoiceField(choices=AgentType.choices, required=False)
    minReward = serializers.FloatField(default=DEFAULT_MIN_REWARD)
    requireReward = serializers.BooleanField(default=False)
    requireFeedback = serializers.BooleanField(default=False)
    limit = serializers.IntegerField(default=DEFAULT_LIMIT, min_value=1, max_value=10000)
    ordering = serializers.ChoiceField(choices=ALLOWED_ORDERINGS, default=DEFAULT_ORDERING)
