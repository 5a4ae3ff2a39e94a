from .content import (
    BannerBulkDeleteView,
    BannerBulkToggleView,
    BannerDetailView,
    BannerListView,
    BannerReorderView,
    CategoryDetailView,
    CategoryListView,
    CategoryMoveView,
    CategoryReorderView,
    CategoryTreeView,
)
from .customers import CustomerDetailView, CustomerListView, CustomerOrdersView, CustomerStatsView
from .dashboard import DashboardStatsView
from .orders import (
    OrderBulkStatusView,
    OrderExportView,
    OrderHistoryView,
    OrderListView,
    OrderStatsView,
    OrderStatusConfigView,
    OrderStatusView,
)
from .products import (
    ProductBulkCategoryView,
    ProductBulkDeleteView,
    ProductBulkPriceView,
    ProductBulkPublishView,
    ProductBulkStockView,
    ProductExportView,
    ProductListView,
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
    "CustomerDetailView",
    "CustomerListView",
    "CustomerOrdersView",
    "CustomerStatsView",
    "DashboardStatsView",
    "OrderBulkStatusView",
    "OrderExportView",
    "OrderHistoryView",
    "OrderListView",
    "OrderStatsView",
    "OrderStatusConfigView",
    "OrderStatusView",
    "ProductBulkCategoryView",
    "ProductBulkDeleteView",
    "ProductBulkPriceView",
    "ProductBulkPublishView",
    "ProductBulkStockView",
    "ProductExportView",
    "ProductListView",
]
