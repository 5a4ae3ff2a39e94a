"""Admin user manager handling bcrypt hashing and verification."""

import uuid

import bcrypt
from django.contrib.auth.base_user import BaseUserManager


class AdminUserManager(BaseUserManager):
    """Create back-office users with bcrypt password hashes."""

    use_in_migrations = True

    def _create_user(self, email: str, password: str, roles=(), **extra_fields):
        if not email:
            raise ValueError("The Email must be set")
        email = self.normalize_email(email)
        user = self.model(id=uuid.uuid4(), email=email, **extra_fields)
        user.password_hash = self.hash_password(password)
        user.save(using=self._db)
        if roles:
            user.roles.set(roles)
        return user

    def create_user(self, email: str, password: str | None = None, roles=(), **extra_fields):
        """Create a merchant or operator account."""
        extra_fields.setdefault("is_staff", True)
        if password is None:
            raise ValueError("Password must be provided")
        return self._create_user(email, password, roles=roles, **extra_fields)

    def create_superuser(self, email: str, password: str, roles=(), **extra_fields):
        """Create an account bound to the super-admin role."""
        from access_control.models import Role

        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_active", True)
        if not roles:
            role, _ = Role.objects.get_or_create(
                name=Role.SUPER_ADMIN_NAME, defaults={"is_super_admin": True}
            )
            roles = [role]
        return self._create_user(email, password, roles=roles, **extra_fields)

    @staticmethod
    def hash_password(raw_password: str) -> str:
        """Hash a raw password using bcrypt and return the utf-8 string."""
        hashed = bcrypt.hashpw(raw_password.encode(), bcrypt.gensalt())
        return hashed.decode()

    @staticmethod
    def verify_password(user, raw_password: str) -> bool:
        """Verify raw password against stored bcrypt hash."""

        if not user.password_hash:
            return False
        return bcrypt.checkpw(raw_password.encode(), user.password_hash.encode("utf-8"))


__all__ = ["AdminUserManager"]
