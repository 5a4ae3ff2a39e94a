"""Compile scopes and caller filters into storage predicates.

Predicates are plain mappings in the storage layer's filter dialect::

    {"status": "shipped", "id": {"$in": [1, 2, 3]}}
    {"$or": [{"name": {"$containsi": "mug"}}, {"sku": {"$containsi": "mug"}}]}

``MATCH_NOTHING`` is the predicate of an empty scope. Repositories must answer
it without touching storage, and callers short-circuit on it before ever
reaching a repository.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Union

from .errors import InvalidInput
from .scope import VisibilityScope


class MatchNothing:
    """Sentinel predicate that matches no entity."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MATCH_NOTHING"


MATCH_NOTHING = MatchNothing()

Predicate = Union[dict, MatchNothing]


@dataclass(frozen=True)
class FilterSpec:
    """Which fields of a collection the generic query parameters apply to."""

    search_fields: tuple[str, ...] = ()
    status_field: str | None = None
    date_field: str | None = "created_at"
    amount_field: str | None = None


@dataclass(frozen=True)
class QueryFilters:
    search: str | None = None
    status: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    date_to_exclusive: bool = False
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "QueryFilters":
        """Parse ``search``, ``status``, ``dateFrom``/``dateTo`` and ``minAmount``/``maxAmount``."""

        date_to, date_to_exclusive = _parse_upper_date(_clean(params.get("dateTo")))
        filters = cls(
            search=_clean(params.get("search")),
            status=_clean(params.get("status")),
            date_from=_parse_lower_date(_clean(params.get("dateFrom"))),
            date_to=date_to,
            date_to_exclusive=date_to_exclusive,
            min_amount=_parse_amount(_clean(params.get("minAmount")), "minAmount"),
            max_amount=_parse_amount(_clean(params.get("maxAmount")), "maxAmount"),
        )
        if (
            filters.min_amount is not None
            and filters.max_amount is not None
            and filters.min_amount > filters.max_amount
        ):
            raise InvalidInput("minAmount cannot exceed maxAmount")
        return filters


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    page_size: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def page_count(self, total: int) -> int:
        return math.ceil(total / self.page_size) if total else 0

    @classmethod
    def from_params(
        cls, params: Mapping[str, Any], default_size: int = 10, max_size: int = 100
    ) -> "Pagination":
        page = _parse_positive_int(params.get("page"), "page", default=1)
        page_size = _parse_positive_int(params.get("pageSize"), "pageSize", default=default_size)
        if page_size > max_size:
            raise InvalidInput(f"pageSize cannot exceed {max_size}")
        return cls(page=page, page_size=page_size)


class FilterCompiler:
    """Translate caller filters and AND them with a scope.

    Translation and scope composition are independent: the scope clause is
    always added next to the translated filters, never folded into them.
    """

    def translate(self, filters: QueryFilters, filter_spec: FilterSpec) -> dict:
        predicate: dict[str, Any] = {}

        if filters.search and filter_spec.search_fields:
            predicate["$or"] = [
                {field: {"$containsi": filters.search}} for field in filter_spec.search_fields
            ]

        if filters.status and filter_spec.status_field:
            predicate[filter_spec.status_field] = filters.status

        if filter_spec.date_field and (filters.date_from or filters.date_to):
            bounds: dict[str, Any] = {}
            if filters.date_from:
                bounds["$gte"] = filters.date_from
            if filters.date_to:
                bounds["$lt" if filters.date_to_exclusive else "$lte"] = filters.date_to
            predicate[filter_spec.date_field] = bounds

        if filter_spec.amount_field and (filters.min_amount is not None or filters.max_amount is not None):
            bounds = {}
            if filters.min_amount is not None:
                bounds["$gte"] = filters.min_amount
            if filters.max_amount is not None:
                bounds["$lte"] = filters.max_amount
            predicate[filter_spec.amount_field] = bounds

        return predicate

    def compile(
        self, scope: VisibilityScope, user_filters: Mapping[str, Any] | None = None
    ) -> Predicate:
        if scope.is_empty:
            return MATCH_NOTHING

        predicate = dict(user_filters or {})
        if scope.is_unrestricted:
            return predicate

        clause = {"$in": scope.sorted_ids()}
        if "id" in predicate:
            return {"$and": [predicate, {"id": clause}]}
        predicate["id"] = clause
        return predicate


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _parse_positive_int(raw: Any, name: str, default: int) -> int:
    raw = _clean(raw)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"{name} must be a positive integer") from exc
    if value < 1:
        raise InvalidInput(f"{name} must be a positive integer")
    return value


def _parse_amount(raw: Any, name: str) -> Decimal | None:
    if raw is None:
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation as exc:
        raise InvalidInput(f"{name} must be a valid number") from exc
    if not value.is_finite():
        raise InvalidInput(f"{name} must be a valid number")
    return value


def _parse_datetime(raw: str, name: str) -> datetime | date:
    if isinstance(raw, (datetime, date)):
        return raw
    text = str(raw)
    if len(text) == 10:
        try:
            return date.fromisoformat(text)
        except ValueError as exc:
            raise InvalidInput(f"{name} must be an ISO 8601 date") from exc
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidInput(f"{name} must be an ISO 8601 date") from exc


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _parse_lower_date(raw: Any) -> datetime | None:
    if raw is None:
        return None
    value = _parse_datetime(raw, "dateFrom")
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    return _aware(value)


def _parse_upper_date(raw: Any) -> tuple[datetime | None, bool]:
    """A bare date covers its whole day, so it becomes an exclusive next-midnight bound."""
    if raw is None:
        return None, False
    value = _parse_datetime(raw, "dateTo")
    if not isinstance(value, datetime):
        return _aware(datetime.combine(value + timedelta(days=1), time.min)), True
    return _aware(value), False


__all__ = [
    "FilterCompiler",
    "FilterSpec",
    "MATCH_NOTHING",
    "MatchNothing",
    "Pagination",
    "Predicate",
    "QueryFilters",
]
