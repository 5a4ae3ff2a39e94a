"""ORM repository, grant store and the scoped-view system check."""

from __future__ import annotations

import gc
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from asgiref.sync import async_to_sync
from django.db import DatabaseError
from django.db.models import Q
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from access_control.checks import scoped_views_declare_resource_type
from access_control.models import PermissionGrant, Role
from access_control.stores import DjangoPermissionStore
from backoffice.operations import change_price
from backoffice.repository import DjangoRepository, predicate_to_q
from backoffice.views.base import ScopedAPIView
from catalog.models import Product
from visibility.errors import InternalQueryFailure
from visibility.filters import MATCH_NOTHING
from visibility.types import Grant, Operation, ResourceType


class PredicateTranslationTests(SimpleTestCase):
    def test_plain_values_and_operators(self):
        self.assertEqual(predicate_to_q({"status": "pending"}), Q(status="pending"))
        self.assertEqual(predicate_to_q({"parent": None}), Q(parent__isnull=True))
        self.assertEqual(predicate_to_q({"stock": {"$lt": 10}}), Q(stock__lt=10))

    def test_unsupported_operator_raises(self):
        with self.assertRaises(ValueError):
            predicate_to_q({"stock": {"$regex": "x"}})
        with self.assertRaises(ValueError):
            predicate_to_q({"$nor": []})


class DjangoRepositoryTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.products = [
            Product.objects.create(name=name, sku=sku, price=Decimal(price), stock=stock)
            for name, sku, price, stock in [
                ("Mug", "M-1", "10.00", 3),
                ("Mug XL", "M-2", "12.50", 0),
                ("Plate", "P-1", "20.00", 40),
            ]
        ]

    def setUp(self):
        self.repository = DjangoRepository()

    def test_find_many_with_dialect(self):
        rows = async_to_sync(self.repository.find_many)(
            ResourceType.PRODUCT,
            {
                "$or": [{"name": {"$containsi": "mug"}}, {"sku": {"$containsi": "mug"}}],
                "stock": {"$lte": 3},
                "published_at": {"$null": True},
            },
            sort=["sku"],
        )
        self.assertEqual([row.sku for row in rows], ["M-1", "M-2"])

    def test_paging_and_count(self):
        rows = async_to_sync(self.repository.find_many)(
            ResourceType.PRODUCT, {}, sort=["-price"], offset=1, limit=1
        )
        self.assertEqual([row.sku for row in rows], ["M-2"])
        self.assertEqual(
            async_to_sync(self.repository.count)(ResourceType.PRODUCT, {"stock": {"$gt": 0}}), 2
        )

    def test_match_nothing_never_reaches_database(self):
        with self.assertNumQueries(0):
            self.assertEqual(async_to_sync(self.repository.find_many)(ResourceType.PRODUCT, MATCH_NOTHING), [])
            self.assertEqual(async_to_sync(self.repository.count)(ResourceType.PRODUCT, MATCH_NOTHING), 0)
            self.assertEqual(
                async_to_sync(self.repository.find_values)(ResourceType.PRODUCT, "id", MATCH_NOTHING), []
            )

    def test_find_values_are_distinct(self):
        values = async_to_sync(self.repository.find_values)(
            ResourceType.PRODUCT, "stock", {"id": {"$in": [p.id for p in self.products]}}
        )
        self.assertEqual(sorted(values), [0, 3, 40])

    def test_update_and_delete(self):
        mug = self.products[0]
        updated = async_to_sync(self.repository.update)(ResourceType.PRODUCT, mug.id, {"stock": 9})
        self.assertEqual(updated.stock, 9)
        async_to_sync(self.repository.delete)(ResourceType.PRODUCT, mug.id)
        self.assertIsNone(async_to_sync(self.repository.find_one)(ResourceType.PRODUCT, mug.id))

    def test_create_returns_saved_row(self):
        created = async_to_sync(self.repository.create)(
            ResourceType.PRODUCT, {"name": "Cup", "sku": "C-1", "price": Decimal("4.00")}
        )
        self.assertIsNotNone(created.pk)
        self.assertEqual(Product.objects.get(pk=created.pk).sku, "C-1")

    def test_bulk_mutations_refresh_updated_at(self):
        mug = self.products[0]
        stale = timezone.now() - timedelta(days=3)
        Product.objects.filter(pk=mug.pk).update(updated_at=stale)

        async_to_sync(change_price(self.repository, "increase", Decimal("1")))(mug)

        mug.refresh_from_db()
        self.assertEqual(mug.price, Decimal("11.00"))
        self.assertGreater(mug.updated_at, stale)

    def test_database_errors_become_internal_failures(self):
        with mock.patch(
            "django.db.models.query.QuerySet.acount",
            new=mock.AsyncMock(side_effect=DatabaseError("connection lost")),
        ), self.assertLogs("backoffice.repository", level="ERROR"):
            with self.assertRaises(InternalQueryFailure):
                async_to_sync(self.repository.count)(ResourceType.PRODUCT, {})


class PermissionStoreTests(TestCase):
    def test_find_grants_filters_by_role_type_and_operation(self):
        role = Role.objects.create(name="Merchant")
        other = Role.objects.create(name="Other")
        PermissionGrant.objects.create(
            role=role, resource_type="product", operation="read", conditions=["is-creator"]
        )
        PermissionGrant.objects.create(role=role, resource_type="product", operation="update")
        PermissionGrant.objects.create(role=other, resource_type="product", operation="read")

        grants = async_to_sync(DjangoPermissionStore().find_grants)(
            [role.id], ResourceType.PRODUCT, Operation.READ
        )
        self.assertEqual(
            grants,
            [Grant(role.id, ResourceType.PRODUCT, Operation.READ, frozenset({"is-creator"}))],
        )


class ScopedViewCheckTests(SimpleTestCase):
    def test_registered_views_pass(self):
        self.assertEqual(scoped_views_declare_resource_type(None), [])

    def test_view_without_resource_type_is_reported(self):
        class UnscopedView(ScopedAPIView):
            pass

        errors = scoped_views_declare_resource_type(None)
        self.assertEqual([error.id for error in errors], ["access_control.E001"])
        self.assertIs(errors[0].obj, UnscopedView)

        del UnscopedView, errors
        gc.collect()
