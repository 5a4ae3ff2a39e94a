"""Request-level identity helpers: bearer tokens, admin lookup and the ``Principal``."""

from typing import Any

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError

from visibility.errors import AuthenticationRequired
from visibility.types import Principal, RoleRef


def bearer_token(request) -> str | None:
    auth_header = request.META.get("HTTP_AUTHORIZATION", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1] or None
    return None


def load_active_admin(user_id: Any):
    """Fetch an active admin with roles prefetched, or ``None``."""
    if not user_id:
        return None
    AdminUser = get_user_model()
    try:
        user = AdminUser.objects.prefetch_related("roles").get(id=user_id)
    except (AdminUser.DoesNotExist, ValidationError):
        return None
    return user if user.is_active else None


def principal_for_user(user) -> Principal:
    """Snapshot an ``AdminUser`` and its roles as an immutable principal."""

    roles = frozenset(
        RoleRef(id=role.id, name=role.name, is_super_admin=role.is_super_admin)
        for role in user.roles.all()
    )
    return Principal(id=user.id, roles=roles)


class RequestSessionProvider:
    """Resolve the principal of a request, once per request.

    The JWT middleware stores the snapshot on the Django request; DRF's
    ``Request`` proxies attribute lookups to it.
    """

    cache_attribute = "_backoffice_principal"

    def current_principal(self, request: Any) -> Principal:
        cached = getattr(request, self.cache_attribute, None)
        if cached is not None:
            return cached

        user = getattr(request, "user", None)
        if user is None or not getattr(user, "is_authenticated", False):
            raise AuthenticationRequired()
        if not getattr(user, "is_active", False):
            raise AuthenticationRequired("User is inactive")

        principal = principal_for_user(user)
        setattr(request, self.cache_attribute, principal)
        return principal


__all__ = ["RequestSessionProvider", "bearer_token", "load_active_admin", "principal_for_user"]
