"""Category and banner endpoints (merchant-owned content)."""

from core.response import api_response
from visibility.aggregation import AggregateSpec, GroupedCount
from visibility.errors import EntityNotFound, InvalidInput
from visibility.filters import FilterSpec
from visibility.types import Operation, Principal, ResourceType

from ..category_tree import build_category_tree, ensure_acyclic_move, tree_depth
from ..operations import delete_entity, set_banner_active, set_sort_order
from ..serializers import (
    BannerSerializer,
    BannerUpdateSerializer,
    CategoryCreateSerializer,
    CategoryMoveSerializer,
    CategorySerializer,
    CategoryUpdateSerializer,
    ReorderSerializer,
    ToggleSerializer,
)
from .base import ScopedAPIView

CATEGORY_SORT = ["sort_order", "name", "id"]
PRODUCTS_PER_CATEGORY = "productsByCategory"


class CategoryView(ScopedAPIView):
    abstract = True
    resource_type = ResourceType.CATEGORY

    async def existing(self, pk: int, message: str = "Category not found"):
        category = await self.visibility.repository.find_one(self.resource_type, pk)
        if category is None:
            raise EntityNotFound(message)
        return category


class CategoryListView(CategoryView):
    filter_spec = FilterSpec(search_fields=("name",), date_field="created_at")

    def get(self, request):
        page = self.run(
            self.visibility.list_scoped,
            self.resource_type,
            self.principal,
            self.query_filters(),
            self.pagination(),
            filter_spec=self.filter_spec,
            sort=CATEGORY_SORT,
        )
        return self.paginated(page, CategorySerializer(page.items, many=True).data)

    def post(self, request):
        payload = CategoryCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        category = self.run(self._create, self.principal, payload.validated_data)
        return api_response(
            CategorySerializer(category).data, status=201, message="Category created successfully"
        )

    async def _create(self, principal: Principal, data: dict):
        await self.visibility.require_grant(principal, self.resource_type, Operation.CREATE)
        if data["parentId"] is not None:
            await self.existing(data["parentId"], "Parent category not found")
        return await self.visibility.repository.create(
            self.resource_type,
            {
                "name": data["name"],
                "parent_id": data["parentId"],
                "sort_order": data["sortOrder"],
                "created_by_id": principal.id,
            },
        )


class CategoryTreeView(CategoryView):
    def get(self, request):
        """Visible categories nested by parent, with scoped product counts."""
        return api_response(self.run(self._tree, self.principal))

    async def _tree(self, principal: Principal) -> dict:
        categories = await self.visibility.find_scoped(
            self.resource_type, principal, sort=CATEGORY_SORT
        )
        stats = await self.visibility.get_scoped_stats(
            principal,
            {
                ResourceType.PRODUCT: AggregateSpec(
                    [GroupedCount(PRODUCTS_PER_CATEGORY, "category_id")]
                )
            },
        )
        tree = build_category_tree(categories, stats[ResourceType.PRODUCT][PRODUCTS_PER_CATEGORY])
        return {"tree": tree, "totalCount": len(categories), "maxDepth": tree_depth(tree)}


class CategoryDetailView(CategoryView):
    def put(self, request, pk: int):
        payload = CategoryUpdateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        category = self.run(self._rename, self.principal, pk, payload.validated_data["name"])
        return api_response(
            CategorySerializer(category).data, message="Category updated successfully"
        )

    def delete(self, request, pk: int):
        force = request.query_params.get("force") == "true"
        self.run(self._delete, self.principal, pk, force)
        return api_response({"id": pk}, message="Category deleted successfully")

    async def _rename(self, principal: Principal, pk: int, name: str):
        category = await self.existing(pk)
        await self.visibility.require_mutate_access(
            principal, self.resource_type, category, Operation.UPDATE
        )
        return await self.visibility.repository.update(self.resource_type, pk, {"name": name})

    async def _delete(self, principal: Principal, pk: int, force: bool) -> None:
        """Children block the delete unless forced; assigned products always do."""
        repository = self.visibility.repository
        category = await self.existing(pk)
        await self.visibility.require_mutate_access(
            principal, self.resource_type, category, Operation.DELETE
        )
        if not force and await repository.count(self.resource_type, {"parent_id": pk}):
            raise InvalidInput(
                "Category has children. Move or delete children first, or use force=true"
            )
        products = await repository.count(ResourceType.PRODUCT, {"category_id": pk})
        if products:
            raise InvalidInput(f"Category has {products} products. Reassign products first.")
        await repository.delete(self.resource_type, pk)


class CategoryMoveView(CategoryView):
    def post(self, request):
        payload = CategoryMoveSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        category = self.run(self._move, self.principal, payload.validated_data)
        return api_response(
            CategorySerializer(category).data, message="Category moved successfully"
        )

    async def _move(self, principal: Principal, data: dict):
        category_id, parent_id = data["categoryId"], data["newParentId"]
        category = await self.existing(category_id)
        await self.visibility.require_mutate_access(
            principal, self.resource_type, category, Operation.UPDATE
        )
        if parent_id is not None:
            await self.existing(parent_id, "New parent category not found")
        await ensure_acyclic_move(self.visibility.repository, category_id, parent_id)
        return await self.visibility.repository.update(
            self.resource_type,
            category_id,
            {"parent_id": parent_id, "sort_order": data["newSortOrder"]},
        )


class ReorderView(ScopedAPIView):
    """Bulk ``sort_order`` update; each id goes through the per-entity guard."""

    abstract = True
    requires_update_grant = False

    def post(self, request):
        payload = ReorderSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        positions = payload.positions()
        if self.requires_update_grant:
            self.run(
                self.visibility.require_grant, self.principal, self.resource_type, Operation.UPDATE
            )
        return self.bulk(
            "Reorder",
            list(positions),
            Operation.UPDATE,
            set_sort_order(self.visibility.repository, self.resource_type, positions),
        )


class CategoryReorderView(ReorderView):
    resource_type = ResourceType.CATEGORY


class BannerView(ScopedAPIView):
    abstract = True
    resource_type = ResourceType.BANNER


class BannerListView(BannerView):
    filter_spec = FilterSpec(search_fields=("title",), date_field="created_at")

    def get(self, request):
        page = self.run(
            self.visibility.list_scoped,
            self.resource_type,
            self.principal,
            self.query_filters(),
            self.pagination(),
            filter_spec=self.filter_spec,
            sort=["sort_order", "-created_at", "-id"],
        )
        return self.paginated(page, BannerSerializer(page.items, many=True).data)


class BannerDetailView(BannerView):
    def put(self, request, pk: int):
        payload = BannerUpdateSerializer(data=request.data, partial=True)
        payload.is_valid(raise_exception=True)
        banner = self.run(self._update, self.principal, pk, payload.changes())
        return api_response(BannerSerializer(banner).data, message="Banner updated successfully")

    async def _update(self, principal: Principal, pk: int, changes: dict):
        repository = self.visibility.repository
        banner = await repository.find_one(self.resource_type, pk)
        if banner is None:
            raise EntityNotFound("Banner not found")
        await self.visibility.require_mutate_access(
            principal, self.resource_type, banner, Operation.UPDATE
        )
        if not changes:
            return banner
        return await repository.update(self.resource_type, pk, changes)


class BannerReorderView(ReorderView):
    resource_type = ResourceType.BANNER
    requires_update_grant = True


class BannerBulkToggleView(BannerView):
    def post(self, request):
        ids = self.bulk_ids()
        payload = ToggleSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        is_active = payload.validated_data["isActive"]
        return self.bulk(
            "Activate" if is_active else "Deactivate",
            ids,
            Operation.UPDATE,
            set_banner_active(self.visibility.repository, is_active),
        )


class BannerBulkDeleteView(BannerView):
    def post(self, request):
        ids = self.bulk_ids()
        return self.bulk(
            "Delete",
            ids,
            Operation.DELETE,
            delete_entity(self.visibility.repository, self.resource_type),
        )


__all__ = [
    "BannerBulkDeleteView",
    "BannerBulkToggleView",
    "BannerDetailView",
    "BannerListView",
    "BannerReorderView",
    "CategoryDetailView",
    "CategoryListView",
    "CategoryMoveView",
    "CategoryReorderView",
    "CategoryTreeView",
]
