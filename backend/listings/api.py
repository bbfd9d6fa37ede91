from rest_framework import permissions, viewsets
from rest_framework.exceptions import PermissionDenied

from accounts.permissions import IsLender

from .models import StorageLocation
from .serializers import StorageLocationSerializer


class StorageLocationViewSet(viewsets.ModelViewSet):
    """Browse storage locations; lenders manage the ones they own."""

    serializer_class = StorageLocationSerializer
    filterset_fields = ["owner"]
    search_fields = ["name", "description"]
    ordering_fields = ["price", "created_at"]

    def get_queryset(self):
        return StorageLocation.objects.select_related("owner").order_by("name", "id")

    def get_permissions(self):
        if self.action in {"list", "retrieve"}:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAuthenticated(), IsLender()]

    def _ensure_owner(self, instance: StorageLocation):
        user = self.request.user
        if not user.is_superuser and instance.owner_id != user.id:
            raise PermissionDenied("Only the owner can modify this storage location.")

    def perform_create(self, serializer):
        serializer.save(owner=self.request.user)

    def perform_update(self, serializer):
        self._ensure_owner(serializer.instance)
        serializer.save()

    def perform_destroy(self, instance):
        self._ensure_owner(instance)
        instance.delete()
