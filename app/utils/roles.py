"""
Staff role codes and matching
"""

from typing import Iterable, List, Optional, Union

ADMIN_ROLES = ["admin", "superadmin"]
DOOR_ROLES = ["door", "entrance", "control", "puerta", "ingreso", "entrada", "acceso", "scan", "scanner"]
SCAN_ROLES = ["door", *ADMIN_ROLES]

RoleInput = Union[str, None, Iterable[Optional[str]]]


def has_role(roles: RoleInput, allowed: Optional[List[str]] = None) -> bool:
    """Case-insensitive role check; "door" in ``allowed`` matches any door-like role name"""
    if not allowed:
        return False
    normalized_allowed = [role.lower() for role in allowed]
    if "*" in normalized_allowed:
        return True

    role_list = [roles] if roles is None or isinstance(roles, str) else list(roles)
    normalized_roles = [role.lower() for role in role_list if isinstance(role, str) and role.strip()]
    if not normalized_roles:
        return False

    if "door" in normalized_allowed:
        if any(key in role for role in normalized_roles for key in DOOR_ROLES):
            return True

    return any(role in normalized_allowed for role in normalized_roles)
