"""Dashboard, order and customer statistics built from scoped aggregates."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from catalog.models import Category
from sales.models import OrderStatus
from visibility.aggregation import (
    AggregateSpec,
    Count,
    DistinctCount,
    GroupedCount,
    Sum,
    TimeBucketedTrend,
    Trend,
    calculate_trend,
)
from visibility.service import VisibilityService
from visibility.types import Principal, ResourceType

TOP_CATEGORIES = 8
LOW_STOCK_LIMIT = 10
SPARKLINE_POINTS = 7
GROWTH_MONTHS = 12

NOT_CANCELLED = {"status": {"$ne": OrderStatus.CANCELLED.value}}


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _shift_months(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) + months
    return moment.replace(year=month_index // 12, month=month_index % 12 + 1)


def _average(total: float, count: int) -> float:
    return round(total / count, 2) if count else 0.0


async def dashboard_stats(
    service: VisibilityService,
    principal: Principal,
    now: datetime,
    *,
    window_days: int = 30,
    low_stock_threshold: int = 10,
) -> dict[str, Any]:
    current = (now - timedelta(days=window_days), None)
    previous = (now - timedelta(days=2 * window_days), now - timedelta(days=window_days))
    growth_since = _shift_months(_month_start(now), -(GROWTH_MONTHS - 1))

    stats = await service.get_scoped_stats(
        principal,
        {
            ResourceType.ORDER: AggregateSpec(
                [
                    Count("totalOrders"),
                    Trend("ordersTrend", Count("orders"), current, previous),
                    Sum("totalSales", "total_amount", NOT_CANCELLED),
                    Trend(
                        "salesTrend",
                        Sum("sales", "total_amount"),
                        current,
                        previous,
                        filters=NOT_CANCELLED,
                    ),
                    GroupedCount("ordersByStatus", "status"),
                    TimeBucketedTrend(
                        "orderTrend", since=current[0], value_field="total_amount", bucket="day"
                    ),
                ]
            ),
            ResourceType.CUSTOMER: AggregateSpec(
                [
                    Count("totalCustomers"),
                    Trend("customersTrend", Count("customers"), current, previous),
                    TimeBucketedTrend(
                        "customerGrowth", since=growth_since, bucket="month", until=now, fill=True
                    ),
                ]
            ),
            ResourceType.PRODUCT: AggregateSpec(
                [
                    Count("totalProducts"),
                    Trend("productsTrend", Count("products"), current, previous),
                    GroupedCount("productsByCategory", "category_id"),
                ]
            ),
        },
    )
    orders = stats[ResourceType.ORDER]
    customers = stats[ResourceType.CUSTOMER]
    products = stats[ResourceType.PRODUCT]

    low_stock = await service.find_scoped(
        ResourceType.PRODUCT,
        principal,
        {"stock": {"$lt": low_stock_threshold}, "published_at": {"$notNull": True}},
        sort=["stock", "id"],
        limit=LOW_STOCK_LIMIT,
    )
    categories = [category async for category in Category.objects.only("id", "name")]

    order_trend = [
        {"date": bucket["bucket"], "count": bucket["count"], "sales": bucket["sum"]}
        for bucket in orders["orderTrend"]
    ]
    recent = order_trend[-SPARKLINE_POINTS:]
    by_category = products["productsByCategory"]
    category_stats = sorted(
        ({"name": category.name, "count": by_category.get(category.id, 0)} for category in categories),
        key=lambda row: (-row["count"], row["name"]),
    )[:TOP_CATEGORIES]

    return {
        "kpis": {
            "totalOrders": {
                "value": orders["totalOrders"],
                "trend": orders["ordersTrend"]["trend"],
                "sparkline": [point["count"] for point in recent],
            },
            "totalCustomers": {
                "value": customers["totalCustomers"],
                "trend": customers["customersTrend"]["trend"],
                "sparkline": [],
            },
            "totalProducts": {
                "value": products["totalProducts"],
                "trend": products["productsTrend"]["trend"],
                "sparkline": [],
            },
            "totalSales": {
                "value": orders["totalSales"],
                "trend": orders["salesTrend"]["trend"],
                "sparkline": [point["sales"] for point in recent],
            },
        },
        "ordersByStatus": [
            {"status": status, "count": count}
            for status, count in sorted(orders["ordersByStatus"].items())
        ],
        "orderTrend": order_trend,
        "lowStockProducts": [
            {"id": product.id, "name": product.name, "stock": product.stock, "price": float(product.price)}
            for product in low_stock
        ],
        "categoryStats": category_stats,
        "customerGrowth": [
            {"month": bucket["bucket"], "count": bucket["count"]}
            for bucket in customers["customerGrowth"]
        ],
    }


async def order_stats(service: VisibilityService, principal: Principal) -> dict[str, Any]:
    stats = await service.get_scoped_stats(
        principal,
        {
            ResourceType.ORDER: AggregateSpec(
                [
                    Count("totalOrders"),
                    Sum("totalRevenue", "total_amount"),
                    GroupedCount("statusBreakdown", "status"),
                ]
            )
        },
    )
    orders = stats[ResourceType.ORDER]
    return {
        "totalOrders": orders["totalOrders"],
        "totalRevenue": orders["totalRevenue"],
        "averageOrderValue": _average(orders["totalRevenue"], orders["totalOrders"]),
        "statusBreakdown": orders["statusBreakdown"],
    }


async def customer_stats(
    service: VisibilityService, principal: Principal, now: datetime
) -> dict[str, Any]:
    """Customer figures derived from the orders the principal can see."""
    this_month = _month_start(now)
    last_month = _shift_months(this_month, -1)

    stats = await service.get_scoped_stats(
        principal,
        {
            ResourceType.ORDER: AggregateSpec(
                [
                    Count("totalOrders"),
                    Sum("totalRevenue", "total_amount"),
                    DistinctCount("activeCustomers", "customer_id"),
                    DistinctCount(
                        "customersThisMonth", "customer_id", {"created_at": {"$gte": this_month}}
                    ),
                    DistinctCount(
                        "customersLastMonth",
                        "customer_id",
                        {"created_at": {"$gte": last_month, "$lt": this_month}},
                    ),
                ]
            ),
            ResourceType.CUSTOMER: AggregateSpec([Count("totalCustomers")]),
        },
    )
    orders = stats[ResourceType.ORDER]
    return {
        "totalCustomers": stats[ResourceType.CUSTOMER]["totalCustomers"],
        "newCustomersThisMonth": orders["customersThisMonth"],
        "growthRate": calculate_trend(orders["customersThisMonth"], orders["customersLastMonth"]),
        "activeCustomers": orders["activeCustomers"],
        "totalRevenue": orders["totalRevenue"],
        "averageOrderValue": _average(orders["totalRevenue"], orders["totalOrders"]),
        "totalOrders": orders["totalOrders"],
    }


async def customer_order_totals(
    service: VisibilityService, principal: Principal, customer_ids: list[int]
) -> dict[int, dict[str, Any]]:
    """Per-customer order count and spend over scoped orders, in one query."""
    if not customer_ids:
        return {}
    orders = await service.find_scoped(
        ResourceType.ORDER, principal, {"customer_id": {"$in": sorted(customer_ids)}}
    )
    totals: dict[int, dict[str, Any]] = {
        customer_id: {"totalOrders": 0, "totalSpent": 0.0} for customer_id in customer_ids
    }
    for order in orders:
        entry = totals.get(order.customer_id)
        if entry is None:
            continue
        entry["totalOrders"] += 1
        entry["totalSpent"] = round(entry["totalSpent"] + float(order.total_amount or 0), 2)
    return totals


__all__ = ["customer_order_totals", "customer_stats", "dashboard_stats", "order_stats"]
