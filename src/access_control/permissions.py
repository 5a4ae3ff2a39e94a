"""DRF permission classes for the back office."""

from rest_framework import permissions


def _is_super_admin(user) -> bool:
    return any(role.is_super_admin for role in user.roles.all())


class PrincipalRequired(permissions.BasePermission):
    """Any active, authenticated admin; grant checks happen in the engine."""

    message = "Authentication required"

    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        return bool(
            user
            and getattr(user, "is_authenticated", False)
            and getattr(user, "is_active", False)
        )


class SuperAdminOnly(PrincipalRequired):
    """Grant administration is reserved to holders of a super-admin role."""

    message = "You do not have permission to perform this action on this resource."

    def has_permission(self, request, view) -> bool:
        return super().has_permission(request, view) and _is_super_admin(request.user)


__all__ = ["PrincipalRequired", "SuperAdminOnly"]
