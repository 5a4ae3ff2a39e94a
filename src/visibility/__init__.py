"""Permission-scoped visibility engine for the marketplace back office."""

from .errors import (
    AuthenticationRequired,
    EntityNotFound,
    InternalQueryFailure,
    InvalidInput,
    PermissionDenied,
    VisibilityError,
)
from .scope import EMPTY, UNRESTRICTED, Restricted, VisibilityScope
from .service import ScopedPage, VisibilityService
from .types import Decision, Grant, Operation, Principal, ResourceType, RoleRef

__all__ = [
    "AuthenticationRequired",
    "Decision",
    "EMPTY",
    "EntityNotFound",
    "Grant",
    "InternalQueryFailure",
    "InvalidInput",
    "Operation",
    "PermissionDenied",
    "Principal",
    "ResourceType",
    "Restricted",
    "RoleRef",
    "ScopedPage",
    "UNRESTRICTED",
    "VisibilityError",
    "VisibilityScope",
    "VisibilityService",
]
