"""Per-entity mutation checks and the sequential bulk executor."""

from __future__ import annotations

import uuid
from unittest import IsolatedAsyncioTestCase

from visibility.conditions import IS_CREATOR
from visibility.errors import InvalidInput, PermissionDenied
from visibility.guard import NOT_FOUND, PERMISSION_DENIED, validate_ids
from visibility.service import VisibilityService
from visibility.types import Operation, ResourceType
from tests.utils import (
    MERCHANT_ROLE,
    SUPER_ROLE,
    FakePermissionStore,
    FakeRepository,
    grant,
    make_principal,
    marketplace_data,
)

MERCHANT_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
MERCHANT_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")


class ValidateIdsTests(IsolatedAsyncioTestCase):
    async def test_structural_errors(self):
        cases = {
            "not a list": "IDs must be an array",
            None: "IDs must be an array",
        }
        for raw, message in cases.items():
            with self.subTest(raw=raw), self.assertRaisesMessage(InvalidInput, message):
                validate_ids(raw)
        with self.assertRaisesMessage(InvalidInput, "IDs array cannot be empty"):
            validate_ids([])
        with self.assertRaisesMessage(InvalidInput, "Cannot process more than 3 items at once"):
            validate_ids([1, 2, 3, 4], max_items=3)
        for bad in ([0], [-1], [1.5], [True], ["abc"], [None]):
            with self.subTest(bad=bad), self.assertRaisesMessage(
                InvalidInput, "All IDs must be positive integers"
            ):
                validate_ids(bad)

    async def test_normalizes_and_deduplicates(self):
        self.assertEqual(validate_ids([3, "1", 3.0, 2, 1]), [3, 1, 2])

    def assertRaisesMessage(self, exc_type, message):
        return self.assertRaisesRegex(exc_type, f"^{message}$")


class MutationAccessTests(IsolatedAsyncioTestCase):
    def build(self, grants):
        self.repository = FakeRepository(marketplace_data(MERCHANT_A, MERCHANT_B))
        self.applied = []
        return VisibilityService(self.repository, FakePermissionStore(grants), max_bulk_items=5)

    async def apply(self, entity):
        self.applied.append(entity.id)

    def merchant(self, principal_id=MERCHANT_A):
        return make_principal(MERCHANT_ROLE, principal_id=principal_id)

    async def test_creator_condition_checks_owner(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.UPDATE, IS_CREATOR)])
        own = await self.repository.find_one(ResourceType.PRODUCT, 1)
        other = await self.repository.find_one(ResourceType.PRODUCT, 3)
        self.assertTrue(await service.check_mutate_access(self.merchant(), ResourceType.PRODUCT, own, "update"))
        self.assertFalse(await service.check_mutate_access(self.merchant(), ResourceType.PRODUCT, other, "update"))
        with self.assertRaises(PermissionDenied):
            await service.require_mutate_access(self.merchant(), ResourceType.PRODUCT, other, "update")

    async def test_unconditional_grant_and_super_admin_pass(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.DELETE)])
        other = await self.repository.find_one(ResourceType.PRODUCT, 3)
        self.assertTrue(await service.check_mutate_access(self.merchant(), ResourceType.PRODUCT, other, "delete"))
        self.assertTrue(
            await service.check_mutate_access(make_principal(SUPER_ROLE), ResourceType.PRODUCT, other, "publish")
        )

    async def test_missing_grant_denies(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.READ)])
        own = await self.repository.find_one(ResourceType.PRODUCT, 1)
        self.assertFalse(await service.check_mutate_access(self.merchant(), ResourceType.PRODUCT, own, "update"))

    async def test_shared_entity_condition_uses_chain_membership(self):
        service = self.build(
            [
                grant(1, ResourceType.PRODUCT, Operation.READ, IS_CREATOR),
                grant(1, ResourceType.ORDER, Operation.UPDATE, IS_CREATOR),
            ]
        )
        shared = await self.repository.find_one(ResourceType.ORDER, 10)
        foreign = await self.repository.find_one(ResourceType.ORDER, 12)
        principal = self.merchant()
        self.assertTrue(await service.check_mutate_access(principal, ResourceType.ORDER, shared, "update"))
        self.assertFalse(await service.check_mutate_access(principal, ResourceType.ORDER, foreign, "update"))

    async def test_type_level_grant_for_create(self):
        service = self.build([grant(1, ResourceType.CATEGORY, Operation.CREATE)])
        await service.require_grant(self.merchant(), ResourceType.CATEGORY, "create")
        await service.require_grant(make_principal(SUPER_ROLE), ResourceType.BANNER, "create")
        with self.assertRaises(PermissionDenied):
            await service.require_grant(self.merchant(), ResourceType.BANNER, "create")
        self.assertEqual(self.repository.calls, [])

    async def test_require_visible_uses_read_scope(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.READ, IS_CREATOR)])
        shared = await self.repository.find_one(ResourceType.ORDER, 10)
        foreign = await self.repository.find_one(ResourceType.ORDER, 12)
        await service.require_visible(self.merchant(), ResourceType.ORDER, shared)
        with self.assertRaises(PermissionDenied):
            await service.require_visible(self.merchant(), ResourceType.ORDER, foreign)

    async def test_bulk_reports_each_item(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.PUBLISH, IS_CREATOR)])
        result = await service.run_bulk(
            self.merchant(), ResourceType.PRODUCT, [1, 3, 999, 2], Operation.PUBLISH, self.apply
        )
        self.assertEqual(
            result.as_dict(),
            {
                "success": [1, 2],
                "failed": [
                    {"id": 3, "error": PERMISSION_DENIED},
                    {"id": 999, "error": NOT_FOUND},
                ],
            },
        )
        self.assertEqual(self.applied, [1, 2])

    async def test_bulk_apply_failure_does_not_abort_batch(self):
        service = self.build([grant(1, ResourceType.BANNER, Operation.DELETE)])

        async def apply(entity):
            if entity.id == 7:
                raise RuntimeError("disk full")
            self.applied.append(entity.id)

        with self.assertLogs("visibility.guard", level="WARNING"):
            result = await service.run_bulk(self.merchant(), ResourceType.BANNER, [7, 8], "delete", apply)
        self.assertEqual(result.as_dict()["success"], [8])
        self.assertEqual(result.as_dict()["failed"], [{"id": 7, "error": "disk full"}])

    async def test_bulk_rejects_bad_input_before_storage(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.DELETE)])
        for ids in ([], [1, 2, 3, 4, 5, 6], [1, "x"]):
            with self.subTest(ids=ids), self.assertRaises(InvalidInput):
                await service.run_bulk(self.merchant(), ResourceType.PRODUCT, ids, "delete", self.apply)
        self.assertEqual(self.repository.calls, [])

    async def test_bulk_unknown_operation_rejected(self):
        service = self.build([])
        with self.assertRaises(InvalidInput):
            await service.run_bulk(self.merchant(), ResourceType.PRODUCT, [1], "archive", self.apply)

    async def test_bulk_keeps_what_apply_returns(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.UPDATE, IS_CREATOR)])

        async def apply(entity):
            return f"touched {entity.id}" if entity.id == 2 else None

        result = await service.run_bulk(self.merchant(), ResourceType.PRODUCT, [1, 2, 3], "update", apply)
        self.assertEqual(result.success, (1, 2))
        self.assertEqual(result.outcomes, ((2, "touched 2"),))
        self.assertNotIn("outcomes", result.as_dict())


class RepeatedAccessCheckTests(IsolatedAsyncioTestCase):
    """Same principal, entity and operation twice: same answer, no extra lookups."""

    def build(self, grants):
        self.repository = FakeRepository(marketplace_data(MERCHANT_A, MERCHANT_B))
        self.store = FakePermissionStore(grants)
        return VisibilityService(self.repository, self.store)

    async def assert_repeatable(self, service, resource_type, entity, expected):
        principal = make_principal(MERCHANT_ROLE, principal_id=MERCHANT_A)
        first = await service.check_mutate_access(principal, resource_type, entity, "update")
        store_calls, repository_calls = self.store.calls, len(self.repository.calls)

        second = await service.check_mutate_access(principal, resource_type, entity, "update")

        self.assertEqual(first, second)
        self.assertIs(first, expected)
        self.assertEqual(self.store.calls, store_calls)
        self.assertEqual(len(self.repository.calls), repository_calls)

    async def test_owned_entity(self):
        service = self.build([grant(1, ResourceType.PRODUCT, Operation.UPDATE, IS_CREATOR)])
        own = await self.repository.find_one(ResourceType.PRODUCT, 1)
        other = await self.repository.find_one(ResourceType.PRODUCT, 3)
        await self.assert_repeatable(service, ResourceType.PRODUCT, own, True)
        await self.assert_repeatable(service, ResourceType.PRODUCT, other, False)

    async def test_chain_scoped_entity(self):
        service = self.build(
            [
                grant(1, ResourceType.PRODUCT, Operation.READ, IS_CREATOR),
                grant(1, ResourceType.ORDER, Operation.UPDATE, IS_CREATOR),
            ]
        )
        visible = await self.repository.find_one(ResourceType.ORDER, 10)
        hidden = await self.repository.find_one(ResourceType.ORDER, 12)
        await self.assert_repeatable(service, ResourceType.ORDER, visible, True)
        await self.assert_repeatable(service, ResourceType.ORDER, hidden, False)
