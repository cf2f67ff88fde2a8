# decisions/views.py

import logging

from django.http import Http404, StreamingHttpResponse
from django.utils import timezone
from pydantic import ValidationError as PydanticValidationError
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import recorder
from .exceptions import FeedbackAlreadyRecordedError
from .export import iter_jsonl
from .models import Decision
from .reward_engine.engine import RewardEngine
from .serializers import (
    DecisionSerializer,
    FeedbackSerializer,
    OutcomeSerializer,
    TrainingExportQuerySerializer,
)

logger = logging.getLogger(__name__)


class OwnedDecisionMixin:
    """Decisions are only visible to the user whose agent made them."""

    def get_decision(self, pk):
        decision = Decision.objects.filter(pk=pk, user=self.request.user).first()
        if decision is None:
            raise Http404("Decision not found.")
        return decision


class DecisionListView(generics.ListAPIView):
    """
    GET: List the authenticated user's decisions, most recent first.
    Optional filters: agentType, itemId, hasFeedback, hasReward.
    """
    serializer_class = DecisionSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        params = self.request.query_params
        qs = Decision.objects.filter(user=self.request.user)
        if params.get('agentType'):
            qs = qs.for_agent(params['agentType'])
        if params.get('itemId'):
            qs = qs.filter(item_id=params['itemId'])
        if params.get('hasFeedback') in ('true', 'false'):
            qs = qs.filter(user_feedback__isnull=params['hasFeedback'] == 'false')
        if params.get('hasReward') in ('true', 'false'):
            qs = qs.filter(reward__isnull=params['hasReward'] == 'false')
        return qs

list_view = DecisionListView.as_view()


class DecisionDetailView(generics.RetrieveAPIView):
    serializer_class = DecisionSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return Decision.objects.filter(user=self.request.user)

detail_view = DecisionDetailView.as_view()


class DecisionFeedbackView(OwnedDecisionMixin, APIView):
    """
    POST: Record the user's verdict on a decision (once) and recompute its reward.
    409 if feedback was already recorded.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        decision = self.get_decision(pk)
        serializer = FeedbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            decision = recorder.record_feedback(
                decision.pk,
                serializer.validated_data['feedback'],
                serializer.validated_data.get('correction'),
            )
        except FeedbackAlreadyRecordedError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(DecisionSerializer(decision).data)

feedback_view = DecisionFeedbackView.as_view()


class DecisionOutcomeView(OwnedDecisionMixin, APIView):
    """POST: Merge observed outcome metrics into a decision and recompute its reward."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        decision = self.get_decision(pk)
        serializer = OutcomeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            decision = recorder.record_outcome(decision.pk, serializer.validated_data['metrics'])
        except PydanticValidationError as exc:
            return Response(
                {"metrics": [error["msg"] for error in exc.errors()]},
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(DecisionSerializer(decision).data)

outcome_view = DecisionOutcomeView.as_view()


class DecisionRewardView(OwnedDecisionMixin, APIView):
    """POST: Recompute a decision's reward from its current state."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        decision = self.get_decision(pk)
        result = RewardEngine().recompute_and_store(decision.pk)
        return Response({
            "id": str(decision.pk),
            "reward": result.reward,
            "reward_components": result.components.to_json(),
        })

reward_view = DecisionRewardView.as_view()


class TrainingExportView(APIView):
    """
    GET: Stream the user's training-eligible decisions as JSONL.

    Query params: agentType, minReward (applied with requireReward),
    requireReward, requireFeedback, limit, ordering.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        serializer = TrainingExportQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        decisions = (
            Decision.objects.filter(user=request.user)
            .eligible_for_export(
                agent_type=params.get('agentType'),
                min_reward=params['minReward'],
                require_reward=params['requireReward'],
                require_feedback=params['requireFeedback'],
            )
            .order_by(params['ordering'], '-id')[:params['limit']]
        )

        label = params.get('agentType') or 'all'
        stamp = int(timezone.now().timestamp() * 1000)
        logger.info(f"Training export for user {request.user.id}: agentType={label}, limit={params['limit']}")

        response = StreamingHttpResponse(iter_jsonl(decisions.iterator()), content_type="application/x-ndjson")
        response["Content-Disposition"] = f'attachment; filename="training-data-{label}-{stamp}.jsonl"'
        return response

export_view = TrainingExportView.as_view()
