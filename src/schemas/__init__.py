"""Pydantic schemas package."""
from src.schemas.rbac import (
    AuthContextSchema,
    EffectivePermissionSchema,
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionCreateSchema,
    PermissionSchema,
    RoleCreateSchema,
    RoleSchema,
    RoleUpdateSchema,
    RoleWithPermissionsSchema,
    UserPermissionSchema,
    UserRoleSchema,
)

__all__ = [
    "AuthContextSchema",
    "EffectivePermissionSchema",
    "PermissionCheckRequest",
    "PermissionCheckResponse",
    "PermissionCreateSchema",
    "PermissionSchema",
    "RoleCreateSchema",
    "RoleSchema",
    "RoleUpdateSchema",
    "RoleWithPermissionsSchema",
    "UserPermissionSchema",
    "UserRoleSchema",
]
