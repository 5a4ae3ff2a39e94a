"""Order list, statistics, export and status endpoints."""

import logging

from django.conf import settings
from django.db.models import prefetch_related_objects
from django.http import HttpResponse
from django.utils import timezone

from core.response import api_response, bulk_response
from sales.models import OrderHistory
from sales.status import OrderStatusService, status_config
from visibility.errors import EntityNotFound
from visibility.filters import FilterSpec, QueryFilters
from visibility.guard import validate_ids
from visibility.types import Operation, ResourceType

from ..exports import ORDER_COLUMNS, render_csv, select_columns
from ..serializers import (
    OrderExportSerializer,
    OrderHistorySerializer,
    OrderSerializer,
    StatusChangeSerializer,
)
from ..stats import order_stats
from .base import ScopedAPIView

logger = logging.getLogger(__name__)

ORDER_FILTERS = FilterSpec(
    search_fields=("order_number", "customer__email"),
    status_field="status",
    date_field="created_at",
    amount_field="total_amount",
)
ORDER_SORT = ["-created_at", "-id"]


class OrderView(ScopedAPIView):
    abstract = True
    resource_type = ResourceType.ORDER
    status_service = OrderStatusService()


class OrderListView(OrderView):
    def get(self, request):
        """Orders containing at least one product the caller can see."""
        page = self.run(
            self.visibility.list_scoped,
            self.resource_type,
            self.principal,
            self.query_filters(),
            self.pagination(),
            filter_spec=ORDER_FILTERS,
            sort=ORDER_SORT,
        )
        prefetch_related_objects(page.items, "customer")
        return self.paginated(page, OrderSerializer(page.items, many=True).data)


class OrderStatsView(OrderView):
    def get(self, request):
        return api_response(self.run(order_stats, self.visibility, self.principal))


class OrderStatusConfigView(OrderView):
    def get(self, request):
        return api_response(status_config())


class OrderHistoryView(OrderView):
    def get(self, request, pk: int):
        """Status changes of one visible order, newest first."""
        self.run(self._visible_order, self.principal, pk)
        history = (
            OrderHistory.objects.filter(order_id=pk)
            .select_related("changed_by")
            .order_by("-created_at", "-id")
        )
        return api_response(OrderHistorySerializer(history, many=True).data)

    async def _visible_order(self, principal, pk):
        order = await self.visibility.repository.find_one(self.resource_type, pk)
        if order is None:
            raise EntityNotFound("Order not found")
        await self.visibility.require_visible(principal, self.resource_type, order)


class OrderExportView(OrderView):
    def post(self, request):
        """Export selected ids, else orders matching ``filters``, else the whole scope."""
        payload = OrderExportSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        fields = payload.validated_data.get("fields")
        select_columns(ORDER_COLUMNS, fields)

        if payload.validated_data.get("ids"):
            ids = validate_ids(payload.validated_data["ids"], settings.BACKOFFICE_BULK_MAX_ITEMS)
            filters = {"id": {"$in": ids}}
        elif payload.validated_data.get("filters"):
            query = QueryFilters.from_params(payload.validated_data["filters"])
            filters = self.visibility.compiler.translate(query, ORDER_FILTERS)
        else:
            filters = {}

        orders = self.run(
            self.visibility.find_scoped, self.resource_type, self.principal, filters, sort=ORDER_SORT
        )
        prefetch_related_objects(orders, "customer")
        logger.info("[AUDIT] principal %s exported %d orders", self.principal.id, len(orders))

        response = HttpResponse(
            render_csv(orders, ORDER_COLUMNS, fields), content_type="text/csv; charset=utf-8"
        )
        stamp = timezone.now().strftime("%Y%m%d%H%M%S")
        response["Content-Disposition"] = f"attachment; filename=orders-{stamp}.csv"
        return response


class OrderStatusView(OrderView):
    def post(self, request, pk: int):
        payload = StatusChangeSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        change = self.run(
            self._transition,
            self.principal,
            pk,
            payload.validated_data["status"],
            payload.validated_data["note"],
        )
        return api_response(change.as_dict())

    async def _transition(self, principal, pk, status, note):
        order = await self.visibility.repository.find_one(self.resource_type, pk)
        if order is None:
            raise EntityNotFound("Order not found")
        await self.visibility.require_mutate_access(
            principal, self.resource_type, order, Operation.UPDATE
        )
        return await self.status_service.change_status(
            order, status, note=note, changed_by_id=principal.id
        )


class OrderBulkStatusView(OrderView):
    def post(self, request):
        ids = self.bulk_ids()
        payload = StatusChangeSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        status, note = payload.validated_data["status"], payload.validated_data["note"]
        principal = self.principal

        async def apply(order):
            change = await self.status_service.change_status(
                order, status, note=note, changed_by_id=principal.id
            )
            return change.warnings or None

        result = self.run(
            self.visibility.run_bulk, principal, self.resource_type, ids, Operation.UPDATE, apply
        )
        data = result.as_dict()
        data["warnings"] = [
            {"id": order_id, **warning.as_dict()}
            for order_id, warnings in result.outcomes
            for warning in warnings
        ]
        return bulk_response(data, "Status update")


__all__ = [
    "OrderBulkStatusView",
    "OrderExportView",
    "OrderHistoryView",
    "OrderListView",
    "OrderStatsView",
    "OrderStatusConfigView",
    "OrderStatusView",
]
