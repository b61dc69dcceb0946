"""Caller identity: verified token claims turned into a request context."""

from thesis_tracker.kernel.identity.context import RequestContext, UserRole, STAFF_ROLES
from thesis_tracker.kernel.identity.jwt import JWTManager, get_jwt_manager

__all__ = [
    "RequestContext",
    "UserRole",
    "STAFF_ROLES",
    "JWTManager",
    "get_jwt_manager",
]
