"""Error taxonomy raised by the visibility engine.

Each error carries the HTTP status the web layer maps it to; the engine itself
never builds responses.
"""


class VisibilityError(Exception):
    """Base class for engine errors."""

    status_code = 500
    default_message = "Visibility engine error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequired(VisibilityError):
    """No principal could be determined for the request."""

    status_code = 401
    default_message = "Authentication required"


class PermissionDenied(VisibilityError):
    """Grant absent, or the entity falls outside the principal's scope."""

    status_code = 403
    default_message = "You do not have permission to perform this action on this resource."


class EntityNotFound(VisibilityError):
    status_code = 404
    default_message = "Entity not found"


class InvalidInput(VisibilityError):
    """Malformed ids, pagination, filters or operation payloads."""

    status_code = 400
    default_message = "Invalid input"


class InternalQueryFailure(VisibilityError):
    """The storage layer or the permission store failed."""

    status_code = 503
    default_message = "Service temporarily unavailable."


__all__ = [
    "AuthenticationRequired",
    "EntityNotFound",
    "InternalQueryFailure",
    "InvalidInput",
    "PermissionDenied",
    "VisibilityError",
]
