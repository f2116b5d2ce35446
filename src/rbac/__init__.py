"""Role and permission definitions."""

from src.rbac.patterns import (
    WILDCARD,
    InvalidPermissionPatternError,
    PermissionPattern,
)
from src.rbac.roles import DEFAULT_ROLES, SUPERUSER_ROLE

__all__ = [
    "DEFAULT_ROLES",
    "InvalidPermissionPatternError",
    "PermissionPattern",
    "SUPERUSER_ROLE",
    "WILDCARD",
]
