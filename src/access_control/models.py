"""Roles and the grant table the visibility engine resolves against."""

from django.core.exceptions import ValidationError
from django.db import models

from visibility.types import Grant, Operation, ResourceType


class Role(models.Model):
    """A named set of grants. Super-admin roles bypass every grant check."""

    SUPER_ADMIN_NAME = "Super Admin"

    name = models.CharField(max_length=50, unique=True)
    description = models.TextField(blank=True)
    is_super_admin = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name


def _validate_conditions(value) -> None:
    if not isinstance(value, list) or not all(isinstance(tag, str) and tag for tag in value):
        raise ValidationError("Conditions must be a list of non-empty tag names.")


class PermissionGrant(models.Model):
    """Role may perform ``operation`` on ``resource_type``, narrowed by ``conditions``."""

    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="grants")
    resource_type = models.CharField(
        max_length=32, choices=[(rt.value, rt.name.replace("_", " ").title()) for rt in ResourceType]
    )
    operation = models.CharField(
        max_length=16, choices=[(op.value, op.name.title()) for op in Operation]
    )
    conditions = models.JSONField(default=list, blank=True, validators=[_validate_conditions])

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["role", "resource_type", "operation"], name="unique_role_grant"
            )
        ]
        ordering = ["role_id", "resource_type", "operation"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.role_id}:{self.resource_type}.{self.operation}"

    def to_grant(self) -> Grant:
        return Grant(
            role_id=self.role_id,
            resource_type=ResourceType(self.resource_type),
            operation=Operation(self.operation),
            conditions=frozenset(self.conditions or ()),
        )


__all__ = ["PermissionGrant", "Role"]
