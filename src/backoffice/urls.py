"""Routing for the scoped back-office endpoints."""

from django.urls import path

from . import views

urlpatterns = [
    path("dashboard/stats/", views.DashboardStatsView.as_view(), name="dashboard-stats"),
    path("products/", views.ProductListView.as_view(), name="product-list"),
    path("products/export/", views.ProductExportView.as_view(), name="product-export"),
    path("products/bulk/publish/", views.ProductBulkPublishView.as_view(), name="product-bulk-publish"),
    path("products/bulk/category/", views.ProductBulkCategoryView.as_view(), name="product-bulk-category"),
    path("products/bulk/price/", views.ProductBulkPriceView.as_view(), name="product-bulk-price"),
    path("products/bulk/stock/", views.ProductBulkStockView.as_view(), name="product-bulk-stock"),
    path("products/bulk/delete/", views.ProductBulkDeleteView.as_view(), name="product-bulk-delete"),
    path("orders/", views.OrderListView.as_view(), name="order-list"),
    path("orders/stats/", views.OrderStatsView.as_view(), name="order-stats"),
    path("orders/status-config/", views.OrderStatusConfigView.as_view(), name="order-status-config"),
    path("orders/export/", views.OrderExportView.as_view(), name="order-export"),
    path("orders/bulk/status/", views.OrderBulkStatusView.as_view(), name="order-bulk-status"),
    path("orders/<int:pk>/status/", views.OrderStatusView.as_view(), name="order-status"),
    path("orders/<int:pk>/history/", views.OrderHistoryView.as_view(), name="order-history"),
    path("customers/", views.CustomerListView.as_view(), name="customer-list"),
    path("customers/stats/", views.CustomerStatsView.as_view(), name="customer-stats"),
    path("customers/<int:pk>/", views.CustomerDetailView.as_view(), name="customer-detail"),
    path("customers/<int:pk>/orders/", views.CustomerOrdersView.as_view(), name="customer-orders"),
    path("categories/", views.CategoryListView.as_view(), name="category-list"),
    path("categories/tree/", views.CategoryTreeView.as_view(), name="category-tree"),
    path("categories/move/", views.CategoryMoveView.as_view(), name="category-move"),
    path("categories/reorder/", views.CategoryReorderView.as_view(), name="category-reorder"),
    path("categories/<int:pk>/", views.CategoryDetailView.as_view(), name="category-detail"),
    path("banners/", views.BannerListView.as_view(), name="banner-list"),
    path("banners/reorder/", views.BannerReorderView.as_view(), name="banner-reorder"),
    path("banners/<int:pk>/", views.BannerDetailView.as_view(), name="banner-detail"),
    path("banners/bulk/toggle/", views.BannerBulkToggleView.as_view(), name="banner-bulk-toggle"),
    path("banners/bulk/delete/", views.BannerBulkDeleteView.as_view(), name="banner-bulk-delete"),
]
