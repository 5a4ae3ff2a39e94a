"""Base view for endpoints whose results depend on the caller's scope."""

from __future__ import annotations

from functools import cached_property
from typing import Any, Awaitable, Callable

from asgiref.sync import async_to_sync
from django.conf import settings

from access_control.permissions import PrincipalRequired
from accounts.session import RequestSessionProvider
from core.response import BaseAPIView, bulk_response, paginated_response
from visibility.filters import Pagination, QueryFilters
from visibility.guard import validate_ids
from visibility.service import ScopedPage, VisibilityService
from visibility.types import Principal, ResourceType

from ..wiring import build_visibility_service


class ScopedAPIView(BaseAPIView):
    """Resolve the principal once and hand it to a per-request engine.

    Subclasses declare ``resource_type``; a system check enforces it.
    """

    abstract = True
    resource_type: ResourceType | None = None
    permission_classes = [PrincipalRequired]
    session_provider = RequestSessionProvider()

    @cached_property
    def visibility(self) -> VisibilityService:
        return build_visibility_service()

    @cached_property
    def principal(self) -> Principal:
        return self.session_provider.current_principal(self.request)

    def run(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Run one async engine call from this synchronous view."""
        return async_to_sync(func)(*args, **kwargs)

    def pagination(self) -> Pagination:
        return Pagination.from_params(
            self.request.query_params,
            default_size=settings.BACKOFFICE_DEFAULT_PAGE_SIZE,
            max_size=settings.BACKOFFICE_MAX_PAGE_SIZE,
        )

    def query_filters(self) -> QueryFilters:
        return QueryFilters.from_params(self.request.query_params)

    def bulk_ids(self) -> list[int]:
        """Structural id validation, ahead of any payload or scope work."""
        return validate_ids(
            self.request.data.get("ids") if hasattr(self.request.data, "get") else None,
            settings.BACKOFFICE_BULK_MAX_ITEMS,
        )

    def paginated(self, page: ScopedPage, data: list[Any]):
        return paginated_response(
            data,
            page=page.pagination.page,
            page_size=page.pagination.page_size,
            page_count=page.page_count,
            total=page.total,
        )

    def bulk(self, action: str, ids: list[int], operation: str, apply) -> Any:
        result = self.run(
            self.visibility.run_bulk, self.principal, self.resource_type, ids, operation, apply
        )
        return bulk_response(result.as_dict(), action)


__all__ = ["ScopedAPIView"]
