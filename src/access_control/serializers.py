"""Serializers for grant administration."""

from rest_framework import serializers

from visibility.conditions import default_registry

from .models import PermissionGrant, Role


class PermissionGrantSerializer(serializers.ModelSerializer):
    """Read and write grants using role names instead of numeric ids."""

    role = serializers.SlugRelatedField(slug_field="name", queryset=Role.objects.all())
    conditions = serializers.ListField(
        child=serializers.CharField(), required=False, allow_empty=True
    )

    class Meta:
        model = PermissionGrant
        fields = [
            "id",
            "role",
            "resource_type",
            "operation",
            "conditions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_conditions(self, value):
        registry = default_registry()
        unknown = sorted(tag for tag in value if tag not in registry)
        if unknown:
            raise serializers.ValidationError(f"Unknown condition tags: {', '.join(unknown)}")
        return sorted(set(value))

    def validate(self, attrs):
        """Prevent duplicate (role, resource type, operation) grants."""
        role = attrs.get("role") or getattr(self.instance, "role", None)
        resource_type = attrs.get("resource_type") or getattr(self.instance, "resource_type", None)
        operation = attrs.get("operation") or getattr(self.instance, "operation", None)
        if role and resource_type and operation:
            qs = PermissionGrant.objects.filter(
                role=role, resource_type=resource_type, operation=operation
            )
            if self.instance:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError(
                    "Grant for this role, resource type and operation already exists."
                )
        return attrs


__all__ = ["PermissionGrantSerializer"]
