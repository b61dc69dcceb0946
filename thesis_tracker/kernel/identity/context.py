"""
Request-scoped caller identity.

The core never reads identity from globals; every operation receives the
caller's context explicitly.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    """Roles asserted by the identity provider."""
    STUDENT = "student"
    ADVISER = "adviser"
    PROGRAM_HEAD = "program_head"
    DEAN = "dean"
    ADMIN = "admin"


# Roles that may review submissions and run bulk actions
STAFF_ROLES = frozenset({
    UserRole.ADVISER,
    UserRole.PROGRAM_HEAD,
    UserRole.DEAN,
    UserRole.ADMIN,
})


@dataclass(frozen=True)
class RequestContext:
    """Who is acting, as claimed by the verified token."""

    user_id: uuid.UUID
    role: UserRole
    ip_address: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
