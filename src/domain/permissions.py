# src/domain/permissions.py

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet


class Role(str, Enum):
    USER = "USER"
    STAFF = "STAFF"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class Permission(str, Enum):
    BOOK = "BOOK"
    MANAGE_BOOKINGS = "MANAGE_BOOKINGS"
    MANAGE_SLOTS = "MANAGE_SLOTS"
    MANAGE_PAYMENTS = "MANAGE_PAYMENTS"
    VALIDATE_TICKETS = "VALIDATE_TICKETS"
    VIEW_ANALYTICS = "VIEW_ANALYTICS"


_ADMIN_PERMISSIONS: FrozenSet[Permission] = frozenset(Permission)

_ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.USER: frozenset({Permission.BOOK}),
    Role.STAFF: frozenset({Permission.BOOK, Permission.VALIDATE_TICKETS}),
    Role.ADMIN: _ADMIN_PERMISSIONS,
    Role.SUPER_ADMIN: _ADMIN_PERMISSIONS,
}


def is_authorized(role: Role, permission: Permission) -> bool:
    """
    Single capability check used by every handler and service.
    """
    return permission in _ROLE_PERMISSIONS.get(role, frozenset())


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role = Role.USER

    def can(self, permission: Permission) -> bool:
        return is_authorized(self.role, permission)

    @property
    def is_privileged(self) -> bool:
        # Booking overrides (any status, any owner) are an admin capability.
        return self.can(Permission.MANAGE_BOOKINGS)
