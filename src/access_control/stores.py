"""Grant table lookups for the permission resolver."""

from typing import Iterable

from visibility.types import Grant, Operation, ResourceType

from .models import PermissionGrant


class DjangoPermissionStore:
    """``PermissionStore`` over the ``PermissionGrant`` table.

    Errors propagate to the resolver, which logs them and denies access.
    """

    async def find_grants(
        self,
        role_ids: Iterable[int],
        resource_type: ResourceType,
        operation: Operation,
    ) -> list[Grant]:
        queryset = PermissionGrant.objects.filter(
            role_id__in=list(role_ids),
            resource_type=resource_type.value,
            operation=operation.value,
        )
        return [grant.to_grant() async for grant in queryset]


__all__ = ["DjangoPermissionStore"]
