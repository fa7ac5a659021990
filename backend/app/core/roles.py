# app/core/roles.py

from __future__ import annotations

import enum
from typing import FrozenSet


class Role(str, enum.Enum):
    CLIENT = "client"      # bound to exactly one client (profile.client_id)
    EMPLOYEE = "employee"  # works on the clients they are associated with
    ADMIN = "admin"        # employee powers + user provisioning and deletes


# Allow-lists used by the role gate.
READ_ROLES: FrozenSet[Role] = frozenset({Role.CLIENT, Role.EMPLOYEE, Role.ADMIN})
WRITE_ROLES: FrozenSet[Role] = frozenset({Role.EMPLOYEE, Role.ADMIN})
ADMIN_ROLES: FrozenSet[Role] = frozenset({Role.ADMIN})


def parse_role(value: str | Role | None) -> Role:
    """
    Strict conversion of a stored/submitted role string.
    Raises ValueError for anything outside the closed set.
    """
    if isinstance(value, Role):
        return value
    normalized = (value or "").strip().lower()
    return Role(normalized)


def is_tenant_bound(role: Role) -> bool:
    """
    True when the role is pinned to a single client via the profile.
    Every member must be handled here; a new role has to be classified explicitly.
    """
    if role is Role.CLIENT:
        return True
    if role is Role.EMPLOYEE or role is Role.ADMIN:
        return False
    raise ValueError(f"Unhandled role: {role!r}")
