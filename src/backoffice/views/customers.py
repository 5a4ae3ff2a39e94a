"""Customer list, statistics and detail endpoints."""

from django.utils import timezone

from core.response import api_response
from visibility.errors import EntityNotFound
from visibility.filters import FilterSpec
from visibility.types import Principal, ResourceType

from ..serializers import CustomerSerializer, OrderSerializer
from ..stats import customer_order_totals, customer_stats
from .base import ScopedAPIView
from .orders import ORDER_FILTERS, ORDER_SORT

CUSTOMER_FILTERS = FilterSpec(search_fields=("username", "email"), date_field="created_at")
CUSTOMER_SORT = ["-created_at", "-id"]


class CustomerView(ScopedAPIView):
    abstract = True
    resource_type = ResourceType.CUSTOMER

    async def visible_customer(self, principal: Principal, pk: int):
        """Fetch one customer; 404 when missing, 403 when outside the caller's scope."""
        customer = await self.visibility.repository.find_one(self.resource_type, pk)
        if customer is None:
            raise EntityNotFound("Customer not found")
        await self.visibility.require_visible(principal, self.resource_type, customer)
        return customer


class CustomerListView(CustomerView):
    def get(self, request):
        """Customers who ordered the caller's products, with scoped order totals."""
        principal = self.principal
        page = self.run(
            self.visibility.list_scoped,
            self.resource_type,
            principal,
            self.query_filters(),
            self.pagination(),
            filter_spec=CUSTOMER_FILTERS,
            sort=CUSTOMER_SORT,
        )
        totals = self.run(
            customer_order_totals,
            self.visibility,
            principal,
            [customer.id for customer in page.items],
        )
        data = CustomerSerializer(page.items, many=True, context={"totals": totals}).data
        return self.paginated(page, data)


class CustomerStatsView(CustomerView):
    def get(self, request):
        return api_response(
            self.run(customer_stats, self.visibility, self.principal, timezone.now())
        )


class CustomerDetailView(CustomerView):
    def get(self, request, pk: int):
        customer, orders = self.run(self._detail, self.principal, pk)
        total_spent = round(sum(float(order.total_amount or 0) for order in orders), 2)
        data = CustomerSerializer(
            customer,
            context={"totals": {customer.id: {"totalOrders": len(orders), "totalSpent": total_spent}}},
        ).data
        data["orders"] = OrderSerializer(orders, many=True).data
        data["stats"] = {
            "totalOrders": len(orders),
            "totalSpent": total_spent,
            "averageOrderValue": round(total_spent / len(orders), 2) if orders else 0.0,
            "lastOrderAt": orders[0].created_at if orders else None,
        }
        return api_response(data)

    async def _detail(self, principal, pk):
        customer = await self.visible_customer(principal, pk)
        orders = await self.visibility.find_scoped(
            ResourceType.ORDER, principal, {"customer_id": customer.id}, sort=ORDER_SORT
        )
        for order in orders:
            order.customer = customer
        return customer, orders


class CustomerOrdersView(CustomerView):
    def get(self, request, pk: int):
        """One customer's orders, restricted to orders the caller can see."""
        principal = self.principal
        query, pagination = self.query_filters(), self.pagination()
        customer, page = self.run(self._orders, principal, pk, query, pagination)
        for order in page.items:
            order.customer = customer
        return self.paginated(page, OrderSerializer(page.items, many=True).data)

    async def _orders(self, principal, pk, query, pagination):
        customer = await self.visible_customer(principal, pk)
        page = await self.visibility.list_scoped(
            ResourceType.ORDER,
            principal,
            query,
            pagination,
            filter_spec=ORDER_FILTERS,
            extra_filters={"customer_id": customer.id},
            sort=ORDER_SORT,
        )
        return customer, page


__all__ = ["CustomerDetailView", "CustomerListView", "CustomerOrdersView", "CustomerStatsView"]
