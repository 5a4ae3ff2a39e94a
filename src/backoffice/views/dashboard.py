"""Dashboard statistics endpoint."""

from django.conf import settings
from django.utils import timezone

from core.response import api_response
from visibility.types import ResourceType

from ..stats import dashboard_stats
from .base import ScopedAPIView


class DashboardStatsView(ScopedAPIView):
    # Every figure on the dashboard is derived from the product scope chain.
    resource_type = ResourceType.PRODUCT

    def get(self, request):
        stats = self.run(
            dashboard_stats,
            self.visibility,
            self.principal,
            timezone.now(),
            window_days=settings.BACKOFFICE_TREND_WINDOW_DAYS,
            low_stock_threshold=settings.BACKOFFICE_LOW_STOCK_THRESHOLD,
        )
        return api_response(stats)


__all__ = ["DashboardStatsView"]
