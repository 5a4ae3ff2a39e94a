"""Custom exception handling to enforce the API error envelope."""

import logging
from typing import Any

from django.conf import settings
from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, NotAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from accounts.services import BlocklistUnavailable
from visibility.errors import InternalQueryFailure, VisibilityError

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = (
    "Authentication credentials were not provided or are invalid, "
    "token revoked, or user is inactive."
)
FORBIDDEN_MESSAGE = "You do not have permission to perform this action on this resource."


def _normalize_errors(payload: Any) -> list[Any]:
    """Convert DRF's response.data into a list for the envelope."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and "detail" in payload:
        return [payload["detail"]]
    return [payload]


def _error_response(message: Any, status_code: int) -> Response:
    return Response({"data": None, "errors": [message]}, status=status_code)


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """Wrap errors in the `{ "data": null, "errors": [...] }` shape.

    - Visibility engine errors carry their own HTTP status.
    - Blocklist and database outages fail closed with 503.
    - Everything else goes through DRF's default handler first.
    """

    if isinstance(exc, VisibilityError):
        if isinstance(exc, InternalQueryFailure):
            logger.error("Storage failure while serving %s: %s", _view_name(context), exc)
        if exc.status_code == status.HTTP_401_UNAUTHORIZED and not getattr(
            settings, "DEBUG_AUTH_ERRORS", False
        ):
            return _error_response(UNAUTHORIZED_MESSAGE, exc.status_code)
        return _error_response(exc.message, exc.status_code)

    if isinstance(exc, BlocklistUnavailable):
        return _error_response(
            "Authentication service unavailable (blocklist).",
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    if isinstance(exc, DatabaseError):
        logger.error("Database error while serving %s: %s", _view_name(context), exc)
        return _error_response(
            "Service temporarily unavailable.", status.HTTP_503_SERVICE_UNAVAILABLE
        )

    response = drf_exception_handler(exc, context)

    if response is None:
        return response

    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        response.status_code = status.HTTP_401_UNAUTHORIZED

    if response.status_code >= 400:
        base_errors = response.data

        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            if getattr(settings, "DEBUG_AUTH_ERRORS", False):
                errors = _normalize_errors(base_errors)
            else:
                errors = [UNAUTHORIZED_MESSAGE]
        elif response.status_code == status.HTTP_403_FORBIDDEN:
            errors = [FORBIDDEN_MESSAGE]
        else:
            errors = _normalize_errors(base_errors)

        response.data = {"data": None, "errors": errors}

    return response


def _view_name(context: dict[str, Any]) -> str:
    view = context.get("view")
    return view.__class__.__name__ if view is not None else "request"


__all__ = ["FORBIDDEN_MESSAGE", "UNAUTHORIZED_MESSAGE", "custom_exception_handler"]
