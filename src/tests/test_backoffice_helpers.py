"""Pure helpers behind the bulk, export, category and status endpoints."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from asgiref.sync import async_to_sync
from django.test import SimpleTestCase

from backoffice.category_tree import build_category_tree, ensure_acyclic_move, tree_depth
from backoffice.exports import BOM, ORDER_COLUMNS, format_address, render_csv, select_columns
from backoffice.operations import adjust_price, adjust_stock
from backoffice.views.products import product_filters
from sales.status import allowed_transitions, validate_transition
from tests.utils import FakeRepository
from visibility.errors import InvalidInput
from visibility.types import ResourceType


class PriceAndStockTests(SimpleTestCase):
    def test_price_operations(self):
        cases = [
            ("set", "12.345", "12.35"),
            ("increase", "5", "15.00"),
            ("decrease", "25", "0.00"),
            ("percentage", "10", "11.00"),
            ("percentage", "-100", "0.00"),
            ("percentage", "1000", "110.00"),
            ("set", "5000000", "999999.99"),
        ]
        for operation, value, expected in cases:
            with self.subTest(operation=operation, value=value):
                self.assertEqual(
                    adjust_price(Decimal("10.00"), operation, Decimal(value)), Decimal(expected)
                )

    def test_unknown_price_operation(self):
        with self.assertRaises(ValueError):
            adjust_price(Decimal("1"), "double", Decimal("1"))

    def test_stock_operations(self):
        self.assertEqual(adjust_stock(10, "set", 3), 3)
        self.assertEqual(adjust_stock(10, "increase", 3), 13)
        self.assertEqual(adjust_stock(10, "decrease", 3), 7)
        self.assertEqual(adjust_stock(2, "decrease", 5), 0)


class ProductFilterTests(SimpleTestCase):
    def test_known_values(self):
        self.assertEqual(
            product_filters({"category": "4", "status": "published", "stockFilter": "low"}, 10),
            {"category_id": 4, "published_at": {"$notNull": True}, "stock": {"$lt": 10}},
        )
        self.assertEqual(
            product_filters({"status": "draft", "stockFilter": "out"}, 10),
            {"published_at": {"$null": True}, "stock": 0},
        )
        self.assertEqual(product_filters({}, 10), {})

    def test_invalid_values(self):
        for params in ({"category": "toys"}, {"status": "archived"}, {"stockFilter": "some"}):
            with self.subTest(params=params), self.assertRaises(InvalidInput):
                product_filters(params, 10)


class OrderExportTests(SimpleTestCase):
    def order(self, **overrides):
        customer = SimpleNamespace(username="alice", email="alice@example.com")
        values = {
            "order_number": "ORD-1",
            "customer_id": 1,
            "customer": customer,
            "status": "shipped",
            "total_amount": Decimal("42.5"),
            "created_at": datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
            "shipping_address": {"street": "1 Main St", "city": "Springfield", "country": "US"},
            "payment_method": "",
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_csv_has_bom_header_and_formatted_rows(self):
        body = render_csv([self.order()], ORDER_COLUMNS)
        self.assertTrue(body.startswith(BOM))
        lines = body[len(BOM):].splitlines()
        self.assertEqual(
            lines[0],
            "Order Number,Customer Name,Customer Email,Status,Total Amount,Created At,"
            "Shipping Address,Payment Method",
        )
        self.assertEqual(
            lines[1],
            'ORD-1,alice,alice@example.com,shipped,$42.50,2024-05-01T09:30:00+00:00,'
            '"1 Main St, Springfield, US",-',
        )

    def test_selected_fields_and_missing_customer(self):
        body = render_csv(
            [self.order(customer_id=None, customer=None)],
            ORDER_COLUMNS,
            ["orderNumber", "customerEmail"],
        )
        self.assertEqual(body[len(BOM):].splitlines(), ["Order Number,Customer Email", "ORD-1,-"])

    def test_empty_export_is_header_only(self):
        self.assertEqual(len(render_csv([], ORDER_COLUMNS).splitlines()), 1)

    def test_unknown_fields_rejected(self):
        with self.assertRaises(InvalidInput):
            select_columns(ORDER_COLUMNS, ["orderNumber", "secret"])

    def test_format_address(self):
        self.assertEqual(format_address(None), "-")
        self.assertEqual(format_address({}), "-")
        self.assertEqual(format_address({"city": "Oslo", "postalCode": "0150"}), "Oslo, 0150")


class StatusTransitionTests(SimpleTestCase):
    def test_allowed_transitions(self):
        self.assertEqual(allowed_transitions("pending"), ("processing", "cancelled"))
        self.assertEqual(allowed_transitions("completed"), ())
        self.assertEqual(validate_transition("shipped", "completed"), "completed")

    def test_rejected_transitions(self):
        with self.assertRaisesRegex(InvalidInput, "Cannot change status from pending to shipped"):
            validate_transition("pending", "shipped")
        with self.assertRaisesRegex(InvalidInput, "Allowed: none"):
            validate_transition("cancelled", "pending")
        with self.assertRaisesRegex(InvalidInput, "Invalid status"):
            validate_transition("pending", "lost")


def category(id, name, parent_id=None, sort_order=0):
    return SimpleNamespace(id=id, name=name, parent_id=parent_id, sort_order=sort_order)


class CategoryTreeTests(SimpleTestCase):
    def test_children_nest_under_parents_in_sort_order(self):
        rows = [
            category(1, "Kitchen", sort_order=2),
            category(2, "Garden", sort_order=1),
            category(3, "Pans", parent_id=1, sort_order=5),
            category(4, "Cups", parent_id=1, sort_order=0),
        ]
        tree = build_category_tree(rows, {1: 7, 3: 2})
        self.assertEqual([node["name"] for node in tree], ["Garden", "Kitchen"])
        kitchen = tree[1]
        self.assertEqual(kitchen["productCount"], 7)
        self.assertEqual([child["name"] for child in kitchen["children"]], ["Cups", "Pans"])
        self.assertEqual(kitchen["children"][1]["productCount"], 2)
        self.assertEqual(kitchen["children"][0]["parent"], {"id": 1, "name": "Kitchen"})
        self.assertEqual(tree_depth(tree), 2)

    def test_category_with_unlisted_parent_becomes_root(self):
        tree = build_category_tree([category(5, "Orphan", parent_id=99)])
        self.assertEqual(tree[0]["id"], 5)
        self.assertIsNone(tree[0]["parent"])
        self.assertEqual(tree_depth([]), 0)

    def test_moves_that_would_create_a_cycle_are_rejected(self):
        repository = FakeRepository(
            {
                ResourceType.CATEGORY: [
                    {"id": 1, "parent_id": None},
                    {"id": 2, "parent_id": 1},
                    {"id": 3, "parent_id": 2},
                ]
            }
        )
        for category_id, new_parent_id in [(1, 3), (2, 2), (1, 2)]:
            with self.subTest(category_id=category_id, new_parent_id=new_parent_id):
                with self.assertRaisesRegex(InvalidInput, "circular"):
                    async_to_sync(ensure_acyclic_move)(repository, category_id, new_parent_id)

        async_to_sync(ensure_acyclic_move)(repository, 3, 1)
        async_to_sync(ensure_acyclic_move)(repository, 2, None)
