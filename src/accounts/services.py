"""Back-office session tokens: signed JWT pairs plus a Redis ``jti`` blocklist.

Access tokens authenticate API calls; refresh tokens are exchanged exactly
once for a new pair. Revocation stores the token id in Redis until the token
would have expired anyway, and any Redis failure is surfaced as
``BlocklistUnavailable`` so callers fail closed.
"""

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple

import jwt
import redis
from django.conf import settings
from rest_framework.exceptions import AuthenticationFailed

from core.redis_client import get_redis_client

logger = logging.getLogger(__name__)


class BlocklistUnavailable(Exception):
    """Raised when the Redis blocklist cannot be reached (fail closed)."""


class TokenPair(NamedTuple):
    access: str
    refresh: str

    def as_dict(self) -> dict[str, str]:
        return {"access": self.access, "refresh": self.refresh}


class TokenService:
    ACCESS_TTL = timedelta(minutes=15)
    REFRESH_TTL = timedelta(hours=24)
    ALGORITHM = "HS256"
    AUDIENCE = "backoffice"
    BLOCKLIST_PREFIX = "backoffice:revoked:"

    @classmethod
    def issue_pair(cls, user) -> TokenPair:
        """Sign a fresh access/refresh pair for an admin user."""
        issued_at = datetime.now(timezone.utc)
        role_names = sorted(role.name for role in user.roles.all())
        return TokenPair(
            access=cls._sign(user, role_names, "access", issued_at + cls.ACCESS_TTL, issued_at),
            refresh=cls._sign(user, role_names, "refresh", issued_at + cls.REFRESH_TTL, issued_at),
        )

    @classmethod
    def _sign(cls, user, role_names: list[str], token_type: str, expires_at: datetime, issued_at: datetime) -> str:
        claims = {
            "sub": str(user.id),
            "aud": cls.AUDIENCE,
            "jti": uuid.uuid4().hex,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "roles": role_names,
            "type": token_type,
        }
        return jwt.encode(claims, settings.SECRET_KEY, algorithm=cls.ALGORITHM)

    @classmethod
    def decode_token(cls, token: str, expected_type: str | None = None) -> dict[str, Any]:
        try:
            claims = jwt.decode(
                token, settings.SECRET_KEY, algorithms=[cls.ALGORITHM], audience=cls.AUDIENCE
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationFailed("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationFailed("Invalid token") from exc

        if expected_type is not None and claims.get("type") != expected_type:
            raise AuthenticationFailed("Invalid token type")
        return claims

    @classmethod
    def rotate_refresh(cls, refresh_token: str, load_user) -> TokenPair:
        """Spend a refresh token: revoke it and sign a new pair for its owner.

        ``load_user`` maps the ``sub`` claim to an active admin or ``None``.
        """
        claims = cls.decode_token(refresh_token, expected_type="refresh")
        if cls.is_token_blocked(claims.get("jti", "")):
            raise AuthenticationFailed("Token revoked")

        user = load_user(claims.get("sub"))
        if user is None:
            raise AuthenticationFailed("User not found or inactive")

        cls.revoke(claims)
        return cls.issue_pair(user)

    @classmethod
    def revoke(cls, claims: dict[str, Any]) -> None:
        cls.block_token(claims["jti"], claims["exp"])

    @classmethod
    def block_token(cls, jti: str, exp: int) -> None:
        remaining = max(1, exp - int(time.time()))
        try:
            get_redis_client().setex(f"{cls.BLOCKLIST_PREFIX}{jti}", remaining, "1")
        except redis.RedisError as exc:
            logger.error("Could not revoke token %s: %s", jti, exc)
            raise BlocklistUnavailable("Redis unavailable while blocklisting") from exc

    @classmethod
    def is_token_blocked(cls, jti: str) -> bool:
        try:
            return get_redis_client().exists(f"{cls.BLOCKLIST_PREFIX}{jti}") > 0
        except redis.RedisError as exc:
            raise BlocklistUnavailable("Redis unavailable while checking blocklist") from exc


__all__ = ["BlocklistUnavailable", "TokenPair", "TokenService"]
