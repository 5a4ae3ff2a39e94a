"""Authenticate back-office requests from a Bearer access token.

On success the request carries the ``AdminUser`` and an immutable
``Principal`` snapshot of its roles; the scoped views read the latter, so
role rows are loaded once per request.
"""

import logging

from django.contrib.auth.models import AnonymousUser
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed

from accounts.models import AdminUser
from accounts.services import BlocklistUnavailable, TokenService
from accounts.session import RequestSessionProvider, bearer_token, load_active_admin, principal_for_user

from .exceptions import UNAUTHORIZED_MESSAGE

logger = logging.getLogger(__name__)

BLOCKLIST_UNAVAILABLE_MESSAGE = "Authentication service unavailable (blocklist)."


class JWTAuthMiddleware(MiddlewareMixin):
    """Attach ``request.user`` and the principal for valid, unrevoked access tokens."""

    def process_request(self, request):  # type: ignore[override]
        request.user = AnonymousUser()
        token = bearer_token(request)
        if token is None:
            return None

        try:
            user = authenticate_access_token(token)
        except AuthenticationFailed as exc:
            logger.debug("Rejected access token on %s: %s", request.path, exc.detail)
            return _envelope_error(UNAUTHORIZED_MESSAGE, status.HTTP_401_UNAUTHORIZED)
        except BlocklistUnavailable:
            logger.error("Token blocklist unavailable; rejecting request to %s", request.path)
            return _envelope_error(BLOCKLIST_UNAVAILABLE_MESSAGE, status.HTTP_503_SERVICE_UNAVAILABLE)

        request.user = user
        setattr(request, RequestSessionProvider.cache_attribute, principal_for_user(user))
        return None


def authenticate_access_token(token: str) -> AdminUser:
    """Return the active admin behind ``token`` or raise ``AuthenticationFailed``."""
    payload = TokenService.decode_token(token, expected_type="access")
    jti = payload.get("jti")
    if not jti or TokenService.is_token_blocked(jti):
        raise AuthenticationFailed("Token revoked")

    user = load_active_admin(payload.get("sub"))
    if user is None:
        raise AuthenticationFailed("User not found or inactive")
    return user


def _envelope_error(message: str, status_code: int) -> JsonResponse:
    return JsonResponse({"data": None, "errors": [message]}, status=status_code)


__all__ = ["JWTAuthMiddleware", "authenticate_access_token"]
