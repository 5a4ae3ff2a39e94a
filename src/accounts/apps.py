"""App configuration for back-office accounts."""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Holds the AdminUser model, JWT token service, and session provider."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
