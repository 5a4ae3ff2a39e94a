"""Scope-restricted aggregation: counts, sums, breakdowns and trends.

An ``AggregateSpec`` names the metrics of one resource type. Every metric of an
aggregate is evaluated against the same scope snapshot; independent metrics run
concurrently. An ``Empty`` scope yields each metric's zero value without a
single storage call.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Sequence

from .filters import FilterCompiler, Predicate
from .protocols import Repository
from .scope import VisibilityScope
from .types import ResourceType


def calculate_trend(current: float, previous: float) -> float:
    """Percentage change from ``previous`` to ``current``, one decimal place.

    A zero baseline yields 100 when anything happened in the current period
    and 0 otherwise.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round(float((current - previous) / previous * 100), 1)


def _to_float(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


def _and(left: Mapping[str, Any], right: Mapping[str, Any]) -> dict:
    if not left:
        return dict(right)
    if not right:
        return dict(left)
    return {"$and": [dict(left), dict(right)]}


@dataclass(frozen=True)
class _MetricContext:
    repository: Repository
    resource_type: ResourceType
    scope: VisibilityScope
    compiler: FilterCompiler

    def predicate(self, filters: Mapping[str, Any]) -> Predicate:
        return self.compiler.compile(self.scope, filters)


class Metric(ABC):
    name: str
    filters: Mapping[str, Any]

    @abstractmethod
    def zero(self) -> Any:
        ...

    @abstractmethod
    async def evaluate(self, ctx: _MetricContext) -> Any:
        ...

    def narrowed(self, extra: Mapping[str, Any]) -> "Metric":
        return replace(self, filters=_and(self.filters, extra))


@dataclass(frozen=True)
class Count(Metric):
    name: str
    filters: Mapping[str, Any] = field(default_factory=dict)

    def zero(self) -> int:
        return 0

    async def evaluate(self, ctx: _MetricContext) -> int:
        return await ctx.repository.count(ctx.resource_type, ctx.predicate(self.filters))


@dataclass(frozen=True)
class Sum(Metric):
    """Sum of a numeric field, rounded to cents."""

    name: str
    field: str
    filters: Mapping[str, Any] = field(default_factory=dict)

    def zero(self) -> float:
        return 0.0

    async def evaluate(self, ctx: _MetricContext) -> float:
        rows = await ctx.repository.find_many(
            ctx.resource_type, ctx.predicate(self.filters), fields=["id", self.field]
        )
        total = sum((Decimal(str(getattr(row, self.field) or 0)) for row in rows), Decimal("0"))
        return round(float(total), 2)


@dataclass(frozen=True)
class DistinctCount(Metric):
    name: str
    field: str
    filters: Mapping[str, Any] = field(default_factory=dict)

    def zero(self) -> int:
        return 0

    async def evaluate(self, ctx: _MetricContext) -> int:
        values = await ctx.repository.find_values(
            ctx.resource_type, self.field, ctx.predicate(self.filters)
        )
        return len([value for value in values if value is not None])


@dataclass(frozen=True)
class GroupedCount(Metric):
    """Entity count per value of ``field``; only values that occur are reported."""

    name: str
    field: str
    filters: Mapping[str, Any] = field(default_factory=dict)
    missing_key: str = "unknown"

    def zero(self) -> dict:
        return {}

    async def evaluate(self, ctx: _MetricContext) -> dict:
        rows = await ctx.repository.find_many(
            ctx.resource_type, ctx.predicate(self.filters), fields=["id", self.field]
        )
        counts = Counter(
            self.missing_key if getattr(row, self.field) is None else getattr(row, self.field)
            for row in rows
        )
        return dict(counts)


def _bucket_key(value: datetime, bucket: str) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    if bucket == "month":
        return f"{value.year:04d}-{value.month:02d}"
    return value.date().isoformat()


def _month_keys(since: datetime, until: datetime) -> list[str]:
    keys = []
    year, month = since.year, since.month
    while (year, month) <= (until.year, until.month):
        keys.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return keys


@dataclass(frozen=True)
class TimeBucketedTrend(Metric):
    """Per-day or per-month entity count (and optional sum) since a point in time.

    With ``fill`` and monthly buckets every month between ``since`` and
    ``until`` is reported, including empty ones.
    """

    name: str
    since: datetime
    date_field: str = "created_at"
    value_field: str | None = None
    bucket: str = "day"
    until: datetime | None = None
    fill: bool = False
    filters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.bucket not in ("day", "month"):
            raise ValueError(f"Unsupported bucket: {self.bucket}")

    def _window(self) -> dict:
        bounds: dict[str, Any] = {"$gte": self.since}
        if self.until is not None:
            bounds["$lte"] = self.until
        return {self.date_field: bounds}

    def _empty_buckets(self) -> dict[str, dict]:
        if not (self.fill and self.bucket == "month" and self.until is not None):
            return {}
        return {key: self._bucket(key) for key in _month_keys(self.since, self.until)}

    def _bucket(self, key: str) -> dict:
        entry: dict[str, Any] = {"bucket": key, "count": 0}
        if self.value_field:
            entry["sum"] = 0.0
        return entry

    def zero(self) -> list:
        return list(self._empty_buckets().values())

    async def evaluate(self, ctx: _MetricContext) -> list:
        fields = ["id", self.date_field] + ([self.value_field] if self.value_field else [])
        rows = await ctx.repository.find_many(
            ctx.resource_type, ctx.predicate(_and(self.filters, self._window())), fields=fields
        )
        buckets = self._empty_buckets()
        for row in rows:
            stamp = getattr(row, self.date_field)
            if stamp is None:
                continue
            key = _bucket_key(stamp, self.bucket)
            if key not in buckets:
                if self.fill and self.bucket == "month" and self.until is not None:
                    continue
                buckets[key] = self._bucket(key)
            buckets[key]["count"] += 1
            if self.value_field:
                buckets[key]["sum"] += _to_float(getattr(row, self.value_field))
        ordered = [buckets[key] for key in sorted(buckets)]
        if self.value_field:
            for entry in ordered:
                entry["sum"] = round(entry["sum"], 2)
        return ordered


@dataclass(frozen=True)
class Trend(Metric):
    """Compare ``base`` over two time windows ``[start, end)``."""

    name: str
    base: Metric
    current: tuple[datetime, datetime | None]
    previous: tuple[datetime, datetime | None]
    date_field: str = "created_at"
    filters: Mapping[str, Any] = field(default_factory=dict)

    def zero(self) -> dict:
        return {"current": self.base.zero(), "previous": self.base.zero(), "trend": 0.0}

    def _windowed(self, window: tuple[datetime, datetime | None]) -> Metric:
        start, end = window
        bounds: dict[str, Any] = {"$gte": start}
        if end is not None:
            bounds["$lt"] = end
        return self.base.narrowed(_and(self.filters, {self.date_field: bounds}))

    async def evaluate(self, ctx: _MetricContext) -> dict:
        current, previous = await asyncio.gather(
            self._windowed(self.current).evaluate(ctx),
            self._windowed(self.previous).evaluate(ctx),
        )
        return {
            "current": current,
            "previous": previous,
            "trend": calculate_trend(current, previous),
        }


@dataclass(frozen=True)
class AggregateSpec:
    metrics: Sequence[Metric]

    def __post_init__(self) -> None:
        names = [metric.name for metric in self.metrics]
        if len(names) != len(set(names)):
            raise ValueError("Metric names must be unique within one aggregate")


class ScopedAggregator:
    def __init__(self, repository: Repository, compiler: FilterCompiler | None = None) -> None:
        self._repository = repository
        self._compiler = compiler or FilterCompiler()

    async def aggregate(
        self, scope: VisibilityScope, resource_type: ResourceType, aggregate_spec: AggregateSpec
    ) -> dict[str, Any]:
        if scope.is_empty:
            return {metric.name: metric.zero() for metric in aggregate_spec.metrics}

        ctx = _MetricContext(self._repository, resource_type, scope, self._compiler)
        values = await asyncio.gather(*(metric.evaluate(ctx) for metric in aggregate_spec.metrics))
        return {metric.name: value for metric, value in zip(aggregate_spec.metrics, values)}


__all__ = [
    "AggregateSpec",
    "Count",
    "DistinctCount",
    "GroupedCount",
    "Metric",
    "ScopedAggregator",
    "Sum",
    "TimeBucketedTrend",
    "Trend",
    "calculate_trend",
]
