"""Root URL configuration for the marketplace back office API."""
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView

urlpatterns = [
    path("auth/", include("accounts.urls")),
    path("", include("access_control.urls")),
    path("", include("backoffice.urls")),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
]
