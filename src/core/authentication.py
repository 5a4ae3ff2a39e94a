"""DRF authentication backed by ``JWTAuthMiddleware``.

Tokens are verified once, in the middleware. DRF only reads the admin it
attached, and exposes the principal snapshot as ``request.auth``.
"""

from rest_framework.authentication import BaseAuthentication

from accounts.session import RequestSessionProvider


class BackofficeTokenAuthentication(BaseAuthentication):
    def authenticate(self, request):
        django_request = getattr(request, "_request", None)
        user = getattr(django_request, "user", None)
        if user is None or not user.is_authenticated:
            return None
        return user, getattr(django_request, RequestSessionProvider.cache_attribute, None)

    def authenticate_header(self, request) -> str:
        # A non-empty header turns NotAuthenticated into 401 instead of 403.
        return 'Bearer realm="backoffice"'


__all__ = ["BackofficeTokenAuthentication"]
