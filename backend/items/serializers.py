# items/serializers.py

from django.db import transaction
from rest_framework import serializers
from .choices import ItemStatus
from .models import Item, Opus
from .services import transition_item
import logging

logger = logging.getLogger(__name__)


class OpusSerializer(serializers.ModelSerializer):
    class Meta:
        model = Opus
        fields = ['id', 'name', 'description', 'created_at']
        read_only_fields = ['id', 'created_at']

    def create(self, validated_data):
        return Opus.objects.create(user=self.context['request'].user, **validated_data)


class ItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = Item
        # lifecycle bookkeeping is owned by transition_item and is read-only here
        fields = [
            'id', 'title', 'raw_instructions', 'routing_notes', 'notes', 'opus',
            'status', 'swimlane', 'priority', 'labels',
            'cycle_count', 'total_time_in_create', 'started_at', 'completed_at', 'blocked_at',
            'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'cycle_count', 'total_time_in_create', 'started_at', 'completed_at',
            'blocked_at', 'created_at', 'updated_at'
        ]

    def validate_opus(self, value):
        if value is not None and value.user_id != self.context['request'].user.id:
            raise serializers.ValidationError("Unknown opus.")
        return value

    def validate_labels(self, value):
        if not isinstance(value, list) or not all(isinstance(label, str) for label in value):
            raise serializers.ValidationError("labels must be a list of strings.")
        return value

    def create(self, validated_data):
        """
        Capture a new item into the inbox. Items captured without a swimlane
        are filed by the AI Filer after commit.
        """
        user = self.context['request'].user
        if not user or not user.is_authenticated:
            raise serializers.ValidationError("Authentication required to create an item.")

        validated_data.pop('status', None)

        with transaction.atomic():
            item = Item.objects.create(user=user, status=ItemStatus.INBOX, **validated_data)

            if not item.swimlane:
                def trigger_ai():
                    from .celery_tasks import run_ai_filing
                    run_ai_filing.delay(item.id, user.id)

                transaction.on_commit(trigger_ai)

        return item

    def update(self, instance, validated_data):
        """Status changes go through transition_item; everything else is a plain save."""
        new_status = validated_data.pop('status', None)

        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if new_status and new_status != instance.status:
                instance = transition_item(instance.id, new_status, changed_by=self.context['request'].user)

        return instance
