"""Routing for grant administration."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import PermissionGrantViewSet

router = DefaultRouter()
router.register(r"grants", PermissionGrantViewSet, basename="grant")

urlpatterns = [
    path("", include(router.urls)),
]
