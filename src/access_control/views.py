"""Grant administration endpoints."""

from core.response import BaseViewSet

from .models import PermissionGrant
from .permissions import SuperAdminOnly
from .serializers import PermissionGrantSerializer


class PermissionGrantViewSet(BaseViewSet):
    """CRUD over ``PermissionGrant`` rows, reserved to super admins."""

    serializer_class = PermissionGrantSerializer
    permission_classes = [SuperAdminOnly]
    queryset = PermissionGrant.objects.select_related("role")

    def get_queryset(self):
        queryset = super().get_queryset()
        role = self.request.query_params.get("role")
        if role:
            queryset = queryset.filter(role__name=role)
        return queryset


__all__ = ["PermissionGrantViewSet"]
