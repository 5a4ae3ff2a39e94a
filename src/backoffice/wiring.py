"""Assemble a request-scoped ``VisibilityService`` from settings."""

from django.conf import settings

from access_control.stores import DjangoPermissionStore
from visibility.service import VisibilityService

from .repository import DjangoRepository


def build_visibility_service() -> VisibilityService:
    return VisibilityService(
        DjangoRepository(),
        DjangoPermissionStore(),
        max_bulk_items=settings.BACKOFFICE_BULK_MAX_ITEMS,
    )


__all__ = ["build_visibility_service"]
