"""Scoped aggregation and the service facade that drives it."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest import IsolatedAsyncioTestCase

from visibility.aggregation import (
    AggregateSpec,
    Count,
    DistinctCount,
    GroupedCount,
    ScopedAggregator,
    Sum,
    TimeBucketedTrend,
    Trend,
    calculate_trend,
)
from visibility.conditions import IS_CREATOR
from visibility.filters import FilterSpec, Pagination, QueryFilters
from visibility.scope import EMPTY, UNRESTRICTED, Restricted
from visibility.service import VisibilityService
from visibility.types import Operation, ResourceType
from tests.utils import (
    MERCHANT_ROLE,
    FakePermissionStore,
    FakeRepository,
    grant,
    make_principal,
    marketplace_data,
)

MERCHANT_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
MERCHANT_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")


def _at(month: int, day: int = 1) -> datetime:
    return datetime(2024, month, day, 12, tzinfo=timezone.utc)


class CalculateTrendTests(IsolatedAsyncioTestCase):
    async def test_trend_values(self):
        self.assertEqual(calculate_trend(150, 100), 50.0)
        self.assertEqual(calculate_trend(50, 100), -50.0)
        self.assertEqual(calculate_trend(1, 3), -66.7)
        self.assertEqual(calculate_trend(5, 0), 100.0)
        self.assertEqual(calculate_trend(0, 0), 0.0)


class ScopedAggregatorTests(IsolatedAsyncioTestCase):
    def setUp(self):
        self.repository = FakeRepository(
            {
                ResourceType.ORDER: [
                    {"id": 1, "status": "pending", "total_amount": 10.25, "customer_id": 7, "created_at": _at(1, 5)},
                    {"id": 2, "status": "shipped", "total_amount": 20, "customer_id": 7, "created_at": _at(3, 2)},
                    {"id": 3, "status": "pending", "total_amount": 5, "customer_id": 8, "created_at": _at(3, 9)},
                    {"id": 4, "status": "cancelled", "total_amount": 99, "customer_id": None, "created_at": _at(3, 9)},
                ]
            }
        )
        self.aggregator = ScopedAggregator(self.repository)

    async def test_empty_scope_returns_zero_values_without_queries(self):
        aggregate_spec = AggregateSpec(
            [
                Count("count"),
                Sum("sum", "total_amount"),
                GroupedCount("byStatus", "status"),
                Trend("trend", Count("c"), (_at(3), None), (_at(2), _at(3))),
                TimeBucketedTrend("growth", since=_at(1), bucket="month", until=_at(3), fill=True),
            ]
        )
        result = await self.aggregator.aggregate(EMPTY, ResourceType.ORDER, aggregate_spec)
        self.assertEqual(result["count"], 0)
        self.assertEqual(result["sum"], 0.0)
        self.assertEqual(result["byStatus"], {})
        self.assertEqual(result["trend"], {"current": 0, "previous": 0, "trend": 0.0})
        self.assertEqual([row["bucket"] for row in result["growth"]], ["2024-01", "2024-02", "2024-03"])
        self.assertEqual(self.repository.calls, [])

    async def test_metrics_respect_restricted_scope(self):
        aggregate_spec = AggregateSpec(
            [
                Count("count"),
                Sum("revenue", "total_amount", {"status": {"$ne": "cancelled"}}),
                GroupedCount("byStatus", "status"),
                DistinctCount("customers", "customer_id"),
            ]
        )
        result = await self.aggregator.aggregate(
            Restricted(frozenset({1, 2, 4})), ResourceType.ORDER, aggregate_spec
        )
        self.assertEqual(result["count"], 3)
        self.assertEqual(result["revenue"], 30.25)
        self.assertEqual(result["byStatus"], {"pending": 1, "shipped": 1, "cancelled": 1})
        self.assertEqual(result["customers"], 1)

    async def test_trend_compares_windows(self):
        aggregate_spec = AggregateSpec([Trend("orders", Count("c"), (_at(3), None), (_at(1), _at(3)))])
        result = await self.aggregator.aggregate(UNRESTRICTED, ResourceType.ORDER, aggregate_spec)
        self.assertEqual(result["orders"], {"current": 3, "previous": 1, "trend": 200.0})

    async def test_monthly_buckets_fill_gaps(self):
        aggregate_spec = AggregateSpec(
            [
                TimeBucketedTrend(
                    "growth", since=_at(1), bucket="month", until=_at(3, 31), fill=True, value_field="total_amount"
                )
            ]
        )
        result = await self.aggregator.aggregate(UNRESTRICTED, ResourceType.ORDER, aggregate_spec)
        self.assertEqual(
            result["growth"],
            [
                {"bucket": "2024-01", "count": 1, "sum": 10.25},
                {"bucket": "2024-02", "count": 0, "sum": 0.0},
                {"bucket": "2024-03", "count": 3, "sum": 124.0},
            ],
        )

    async def test_daily_buckets_only_report_active_days(self):
        aggregate_spec = AggregateSpec([TimeBucketedTrend("daily", since=_at(3))])
        result = await self.aggregator.aggregate(UNRESTRICTED, ResourceType.ORDER, aggregate_spec)
        self.assertEqual(
            result["daily"],
            [{"bucket": "2024-03-02", "count": 1}, {"bucket": "2024-03-09", "count": 2}],
        )

    async def test_duplicate_metric_names_rejected(self):
        with self.assertRaises(ValueError):
            AggregateSpec([Count("total"), Sum("total", "total_amount")])


class VisibilityServiceTests(IsolatedAsyncioTestCase):
    def build(self, grants):
        self.repository = FakeRepository(marketplace_data(MERCHANT_A, MERCHANT_B))
        return VisibilityService(self.repository, FakePermissionStore(grants))

    async def test_list_scoped_pages_within_scope(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.READ, IS_CREATOR)])
        principal = make_principal(MERCHANT_ROLE, principal_id=MERCHANT_B)
        page = await service.list_scoped(
            ResourceType.ORDER,
            principal,
            QueryFilters.from_params({"status": "pending"}),
            Pagination(page=1, page_size=1),
            filter_spec=FilterSpec(status_field="status"),
            sort=["-id"],
        )
        self.assertEqual([order.id for order in page.items], [12])
        self.assertEqual(page.total, 2)
        self.assertEqual(page.page_count, 2)

    async def test_list_scoped_without_grant_is_empty_page(self):
        service = self.build([])
        page = await service.list_scoped(
            ResourceType.CUSTOMER,
            make_principal(MERCHANT_ROLE),
            QueryFilters(),
            Pagination(),
            filter_spec=FilterSpec(),
        )
        self.assertEqual(page.items, [])
        self.assertEqual(page.total, 0)
        self.assertEqual(self.repository.calls, [])

    async def test_search_does_not_widen_scope(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.READ, IS_CREATOR)])
        rows = await service.find_scoped(
            ResourceType.PRODUCT,
            make_principal(MERCHANT_ROLE, principal_id=MERCHANT_A),
            service.compiler.translate(
                QueryFilters(search="bowl"), FilterSpec(search_fields=("name", "sku"))
            ),
        )
        self.assertEqual(rows, [])

    async def test_get_scoped_stats_uses_one_chain_snapshot(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.READ, IS_CREATOR)])
        principal = make_principal(MERCHANT_ROLE, principal_id=MERCHANT_A)
        stats = await service.get_scoped_stats(
            principal,
            {
                ResourceType.ORDER: AggregateSpec([Count("orders"), Sum("revenue", "total_amount")]),
                ResourceType.CUSTOMER: AggregateSpec([Count("customers")]),
                ResourceType.PRODUCT: AggregateSpec([Count("products")]),
            },
        )
        self.assertEqual(stats[ResourceType.ORDER], {"orders": 2, "revenue": 50.0})
        self.assertEqual(stats[ResourceType.CUSTOMER], {"customers": 2})
        self.assertEqual(stats[ResourceType.PRODUCT], {"products": 2})
        # product ids, order ids via items, customer ids via orders
        self.assertEqual(len(self.repository.calls_for("find_values")), 3)

    async def test_get_scoped_stats_empty_scope_issues_no_queries(self):
        service = self.build([])
        stats = await service.get_scoped_stats(
            make_principal(MERCHANT_ROLE),
            {ResourceType.ORDER: AggregateSpec([Count("orders"), GroupedCount("byStatus", "status")])},
        )
        self.assertEqual(stats[ResourceType.ORDER], {"orders": 0, "byStatus": {}})
        self.assertEqual(self.repository.calls, [])
