"""System checks for the scoped back-office views."""

from django.core.checks import Error, register

from visibility.types import ResourceType


def _subclasses(cls):
    for subclass in cls.__subclasses__():
        yield subclass
        yield from _subclasses(subclass)


@register()
def scoped_views_declare_resource_type(app_configs, **kwargs):
    """Every concrete ``ScopedAPIView`` must name the resource type it scopes."""
    errors: list[Error] = []

    # Import here to avoid circular imports at module load time.
    import backoffice.views  # noqa: F401
    from backoffice.views.base import ScopedAPIView

    for view_cls in _subclasses(ScopedAPIView):
        if vars(view_cls).get("abstract"):
            continue
        resource_type = getattr(view_cls, "resource_type", None)
        if not isinstance(resource_type, ResourceType):
            errors.append(
                Error(
                    f"{view_cls.__name__} is a ScopedAPIView but does not define "
                    f"a ResourceType resource_type.",
                    obj=view_cls,
                    id="access_control.E001",
                )
            )

    return errors
