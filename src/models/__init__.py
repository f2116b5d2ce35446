# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Database models package."""

from src.models.base import Base, TimestampMixin
from src.models.enums import PermissionSource, RiskLevel
from src.models.permission import Permission
from src.models.role import Role
from src.models.role_permission import RolePermission
from src.models.user import User
from src.models.user_permission import UserPermission
from src.models.user_role import UserRole

__all__ = [
    "Base",
    "Permission",
    "PermissionSource",
    "RiskLevel",
    "Role",
    "RolePermission",
    "TimestampMixin",
    "User",
    "UserPermission",
    "UserRole",
]
