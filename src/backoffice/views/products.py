"""Product list, export and bulk endpoints."""

import logging
from typing import Any, Mapping

from django.conf import settings
from django.db.models import prefetch_related_objects
from django.http import HttpResponse
from django.utils import timezone

from catalog.models import Category
from visibility.errors import InvalidInput
from visibility.filters import FilterSpec
from visibility.types import Operation, ResourceType

from ..exports import PRODUCT_COLUMNS, render_csv
from ..operations import change_price, change_stock, delete_entity, set_category, set_published
from ..serializers import (
    CategoryPayloadSerializer,
    PriceOperationSerializer,
    ProductSerializer,
    PublishPayloadSerializer,
    StockOperationSerializer,
)
from .base import ScopedAPIView

logger = logging.getLogger(__name__)

PRODUCT_FILTERS = FilterSpec(search_fields=("name", "sku"), date_field="created_at")
PRODUCT_SORT = ["-created_at", "-id"]


def product_filters(params: Mapping[str, Any], low_stock_threshold: int) -> dict:
    """Product-specific query parameters: ``category``, ``status`` and ``stockFilter``."""
    filters: dict[str, Any] = {}

    category = (params.get("category") or "").strip()
    if category:
        if not category.isdigit():
            raise InvalidInput("category must be a category id")
        filters["category_id"] = int(category)

    status = (params.get("status") or "").strip()
    if status == "published":
        filters["published_at"] = {"$notNull": True}
    elif status == "draft":
        filters["published_at"] = {"$null": True}
    elif status:
        raise InvalidInput("status must be one of: published, draft")

    stock_filter = (params.get("stockFilter") or "").strip()
    if stock_filter == "low":
        filters["stock"] = {"$lt": low_stock_threshold}
    elif stock_filter == "out":
        filters["stock"] = 0
    elif stock_filter:
        raise InvalidInput("stockFilter must be one of: low, out")

    return filters


class ProductView(ScopedAPIView):
    abstract = True
    resource_type = ResourceType.PRODUCT

    def product_filters(self) -> dict:
        return product_filters(self.request.query_params, settings.BACKOFFICE_LOW_STOCK_THRESHOLD)


class ProductListView(ProductView):
    def get(self, request):
        """Products visible to the caller, newest first."""
        query, pagination, extra = self.query_filters(), self.pagination(), self.product_filters()
        page = self.run(
            self.visibility.list_scoped,
            self.resource_type,
            self.principal,
            query,
            pagination,
            filter_spec=PRODUCT_FILTERS,
            extra_filters=extra,
            sort=PRODUCT_SORT,
        )
        prefetch_related_objects(page.items, "category")
        return self.paginated(page, ProductSerializer(page.items, many=True).data)


class ProductExportView(ProductView):
    def get(self, request):
        """All visible products matching the list filters, as CSV."""
        query, extra = self.query_filters(), self.product_filters()
        filters = {**self.visibility.compiler.translate(query, PRODUCT_FILTERS), **extra}
        products = self.run(
            self.visibility.find_scoped,
            self.resource_type,
            self.principal,
            filters,
            sort=PRODUCT_SORT,
        )
        prefetch_related_objects(products, "category")
        logger.info("[AUDIT] principal %s exported %d products", self.principal.id, len(products))

        response = HttpResponse(render_csv(products, PRODUCT_COLUMNS), content_type="text/csv; charset=utf-8")
        stamp = timezone.now().strftime("%Y%m%d%H%M%S")
        response["Content-Disposition"] = f"attachment; filename=products-{stamp}.csv"
        return response


class ProductBulkPublishView(ProductView):
    def post(self, request):
        ids = self.bulk_ids()
        payload = PublishPayloadSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        publish = payload.validated_data["shouldPublish"]
        return self.bulk(
            "Publish" if publish else "Unpublish",
            ids,
            Operation.PUBLISH,
            set_published(self.visibility.repository, publish),
        )


class ProductBulkCategoryView(ProductView):
    def post(self, request):
        ids = self.bulk_ids()
        payload = CategoryPayloadSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        category_id = payload.validated_data["categoryId"]
        if category_id is not None and not Category.objects.filter(pk=category_id).exists():
            raise InvalidInput("Category not found")
        return self.bulk(
            "Category update",
            ids,
            Operation.UPDATE,
            set_category(self.visibility.repository, category_id),
        )


class ProductBulkPriceView(ProductView):
    def post(self, request):
        ids = self.bulk_ids()
        payload = PriceOperationSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        return self.bulk(
            "Price update",
            ids,
            Operation.UPDATE,
            change_price(
                self.visibility.repository,
                payload.validated_data["operation"],
                payload.validated_data["value"],
            ),
        )


class ProductBulkStockView(ProductView):
    def post(self, request):
        ids = self.bulk_ids()
        payload = StockOperationSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        return self.bulk(
            "Stock update",
            ids,
            Operation.UPDATE,
            change_stock(
                self.visibility.repository,
                payload.validated_data["operation"],
                payload.validated_data["value"],
            ),
        )


class ProductBulkDeleteView(ProductView):
    def post(self, request):
        ids = self.bulk_ids()
        return self.bulk(
            "Delete",
            ids,
            Operation.DELETE,
            delete_entity(self.visibility.repository, self.resource_type),
        )


__all__ = [
    "ProductBulkCategoryView",
    "ProductBulkDeleteView",
    "ProductBulkPriceView",
    "ProductBulkPublishView",
    "ProductBulkStockView",
    "ProductExportView",
    "ProductListView",
    "product_filters",
]
