"""Back-office session endpoints: login, refresh, logout, and the current admin."""

from typing import Any

from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.response import Response

from core.response import BaseAPIView, api_response
from .serializers import AdminProfileSerializer, LoginSerializer, RefreshSerializer
from .services import TokenService
from .session import bearer_token, load_active_admin


class PublicSessionView(BaseAPIView):
    """Session endpoints handle their own credential checks."""

    permission_classes: list[Any] = []

    @staticmethod
    def require_admin(request):
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        return request.user


class LoginView(PublicSessionView):
    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Check email and password, then issue an access/refresh pair."""
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        pair = TokenService.issue_pair(serializer.validated_data["user"])
        return api_response(pair.as_dict())


class RefreshView(PublicSessionView):
    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Trade a refresh token for a new pair; the old refresh token is spent."""
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        pair = TokenService.rotate_refresh(serializer.validated_data["refresh"], load_active_admin)
        return api_response(pair.as_dict())


class LogoutView(PublicSessionView):
    # noinspection PyMethodMayBeStatic
    def post(self, request):
        self.require_admin(request)
        token = bearer_token(request)
        if token is None:
            raise AuthenticationFailed("Authentication required")
        TokenService.revoke(TokenService.decode_token(token, expected_type="access"))
        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(PublicSessionView):
    # noinspection PyMethodMayBeStatic
    def get(self, request):
        return api_response(AdminProfileSerializer(self.require_admin(request)).data)


__all__ = ["LoginView", "LogoutView", "MeView", "RefreshView"]
