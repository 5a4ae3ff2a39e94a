"""Serializers for back-office login and profile payloads."""

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed

from .managers import AdminUserManager

AdminUser = get_user_model()


class LoginSerializer(serializers.Serializer):
    """Authenticate an admin via email/password using bcrypt verification."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        email = attrs.get("email")
        password = attrs.get("password")
        try:
            user = AdminUser.objects.prefetch_related("roles").get(email__iexact=email)
        except AdminUser.DoesNotExist:
            raise AuthenticationFailed("Invalid credentials")

        if not user.is_active:
            raise AuthenticationFailed("User is inactive")

        if not AdminUserManager.verify_password(user, password):
            raise AuthenticationFailed("Invalid credentials")

        attrs["user"] = user
        return attrs


class RefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class AdminProfileSerializer(serializers.ModelSerializer):
    """Read-only profile of the signed-in admin, with role names."""

    roles = serializers.SerializerMethodField()
    is_super_admin = serializers.SerializerMethodField()

    class Meta:
        model = AdminUser
        fields = ["id", "email", "first_name", "last_name", "roles", "is_super_admin"]
        read_only_fields = fields

    def get_roles(self, obj) -> list[str]:
        return sorted(role.name for role in obj.roles.all())

    def get_is_super_admin(self, obj) -> bool:
        return any(role.is_super_admin for role in obj.roles.all())


__all__ = ["AdminProfileSerializer", "LoginSerializer", "RefreshSerializer"]
