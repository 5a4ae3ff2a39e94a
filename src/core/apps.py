from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Project plumbing: settings, envelope, JWT middleware, side-effect runner."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Back-office core"
