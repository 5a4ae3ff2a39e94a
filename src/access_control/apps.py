"""Roles, permission grants and the grant store used by the visibility engine."""

from django.apps import AppConfig


class AccessControlConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "access_control"
    verbose_name = "Roles and grants"

    def ready(self) -> None:
        # Registers the scoped-view resource type check.
        from . import checks  # noqa: F401
