# items/views.py

from rest_framework import generics, permissions
from .choices import ItemStatus
from .models import Item, Opus
from .serializers import ItemSerializer, OpusSerializer


class ItemOwnerPermission(permissions.BasePermission):
    """
    Custom permission to only allow owners of an Item to view, edit, or delete it.
    """
    def has_object_permission(self, request, view, obj):
        return obj.user == request.user


class ItemListCreateView(generics.ListCreateAPIView):
    """
    GET: List the authenticated user's items, optionally filtered by ?status=.
    POST: Capture a new item (lands in INBOX and is queued for AI filing).
    """
    serializer_class = ItemSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        # ensure user only sees own items
        qs = Item.objects.filter(user=self.request.user)
        status = self.request.query_params.get('status')
        if status:
            qs = qs.filter(status=status)
        return qs

list_create_view=ItemListCreateView.as_view()


class ItemRetrieveUpdateDestroyView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET, PUT, PATCH, DELETE for a specific item.
    Moving an item across the board is a PATCH of its status.
    Only archived items can be deleted; any other item answers DELETE with 404.
    """
    serializer_class = ItemSerializer
    permission_classes = [permissions.IsAuthenticated, ItemOwnerPermission]

    def get_queryset(self):
        qs = Item.objects.filter(user=self.request.user)
        if self.request.method == 'DELETE':
            qs = qs.filter(status=ItemStatus.ARCHIVE)
        return qs

retrieve_update_destroy_view=ItemRetrieveUpdateDestroyView.as_view()


class OpusListCreateView(generics.ListCreateAPIView):
    serializer_class = OpusSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return Opus.objects.filter(user=self.request.user)

opus_list_create_view=OpusListCreateView.as_view()
