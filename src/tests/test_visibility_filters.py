"""Caller filter parsing, translation and scope composition."""

from datetime import datetime, timezone
from decimal import Decimal

from django.test import SimpleTestCase

from visibility.errors import InvalidInput
from visibility.filters import MATCH_NOTHING, FilterCompiler, FilterSpec, Pagination, QueryFilters
from visibility.scope import EMPTY, UNRESTRICTED, Restricted

ORDER_SPEC = FilterSpec(
    search_fields=("order_number", "customer__email"),
    status_field="status",
    date_field="created_at",
    amount_field="total_amount",
)


class QueryFilterParsingTests(SimpleTestCase):
    def test_blank_values_are_ignored(self):
        filters = QueryFilters.from_params({"search": "  ", "status": "", "minAmount": None})
        self.assertEqual(filters, QueryFilters())

    def test_bare_date_upper_bound_covers_whole_day(self):
        filters = QueryFilters.from_params({"dateFrom": "2024-03-01", "dateTo": "2024-03-31"})
        self.assertEqual(filters.date_from, datetime(2024, 3, 1, tzinfo=timezone.utc))
        self.assertEqual(filters.date_to, datetime(2024, 4, 1, tzinfo=timezone.utc))
        self.assertTrue(filters.date_to_exclusive)

    def test_timestamp_upper_bound_is_inclusive(self):
        filters = QueryFilters.from_params({"dateTo": "2024-03-31T12:00:00Z"})
        self.assertEqual(filters.date_to, datetime(2024, 3, 31, 12, tzinfo=timezone.utc))
        self.assertFalse(filters.date_to_exclusive)

    def test_invalid_values_are_rejected(self):
        for params in (
            {"dateFrom": "yesterday"},
            {"minAmount": "abc"},
            {"maxAmount": "NaN"},
            {"minAmount": "50", "maxAmount": "10"},
        ):
            with self.subTest(params=params), self.assertRaises(InvalidInput):
                QueryFilters.from_params(params)

    def test_pagination_defaults_and_limits(self):
        self.assertEqual(Pagination.from_params({}), Pagination(page=1, page_size=10))
        page = Pagination.from_params({"page": "3", "pageSize": "25"})
        self.assertEqual(page.offset, 50)
        self.assertEqual(page.page_count(51), 3)
        self.assertEqual(page.page_count(0), 0)
        for params in ({"page": "0"}, {"pageSize": "x"}, {"pageSize": "101"}):
            with self.subTest(params=params), self.assertRaises(InvalidInput):
                Pagination.from_params(params, max_size=100)


class FilterCompilerTests(SimpleTestCase):
    def setUp(self):
        self.compiler = FilterCompiler()

    def test_translate_builds_every_clause(self):
        query = QueryFilters.from_params(
            {
                "search": "ORD-1",
                "status": "pending",
                "dateFrom": "2024-01-01",
                "minAmount": "10",
                "maxAmount": "99.5",
            }
        )
        self.assertEqual(
            self.compiler.translate(query, ORDER_SPEC),
            {
                "$or": [
                    {"order_number": {"$containsi": "ORD-1"}},
                    {"customer__email": {"$containsi": "ORD-1"}},
                ],
                "status": "pending",
                "created_at": {"$gte": datetime(2024, 1, 1, tzinfo=timezone.utc)},
                "total_amount": {"$gte": Decimal("10"), "$lte": Decimal("99.5")},
            },
        )

    def test_translate_skips_fields_the_collection_lacks(self):
        query = QueryFilters.from_params({"status": "pending", "minAmount": "1"})
        self.assertEqual(self.compiler.translate(query, FilterSpec(search_fields=("name",))), {})

    def test_empty_scope_compiles_to_match_nothing(self):
        self.assertIs(self.compiler.compile(EMPTY, {"status": "pending"}), MATCH_NOTHING)

    def test_unrestricted_scope_leaves_filters_alone(self):
        self.assertEqual(self.compiler.compile(UNRESTRICTED, {"status": "pending"}), {"status": "pending"})
        self.assertEqual(self.compiler.compile(UNRESTRICTED), {})

    def test_restricted_scope_adds_sorted_id_clause(self):
        predicate = self.compiler.compile(Restricted(frozenset({3, 1})), {"status": "pending"})
        self.assertEqual(predicate, {"status": "pending", "id": {"$in": [1, 3]}})

    def test_caller_id_filter_is_intersected_not_replaced(self):
        predicate = self.compiler.compile(Restricted(frozenset({1, 2})), {"id": {"$in": [2, 9]}})
        self.assertEqual(
            predicate, {"$and": [{"id": {"$in": [2, 9]}}, {"id": {"$in": [1, 2]}}]}
        )
