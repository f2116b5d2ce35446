# src/schemas/rbac.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import PermissionSource, RiskLevel


class PermissionSchema(BaseModel):
    """Schema representing a catalog permission."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    display_name: str
    description: str | None = None
    category: str
    resource: str
    action: str
    scope: str
    risk_level: RiskLevel
    requires_mfa: bool
    audit_required: bool
    is_system: bool
    is_active: bool


class PermissionCreateSchema(BaseModel):
    """Schema for adding a permission to the catalog."""

    name: str = Field(min_length=1, max_length=100)
    display_name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category: str = Field(min_length=1, max_length=50)
    resource: str = Field(min_length=1, max_length=100)
    action: str = Field(min_length=1, max_length=100)
    scope: str = "ALL"
    risk_level: RiskLevel = RiskLevel.LOW
    requires_mfa: bool = False


class PermissionStatusSchema(BaseModel):
    """Schema for toggling a catalog permission."""

    is_active: bool


class RoleSchema(BaseModel):
    """Schema representing a role."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    display_name: str
    description: str | None = None
    color: str | None = None
    icon: str | None = None
    level: int
    priority: int
    is_system: bool
    is_active: bool
    parent_role_id: int | None = None


class RoleWithPermissionsSchema(RoleSchema):
    """Schema representing a role along with its active permissions."""

    permissions: list[str]
    user_count: int = 0


class RoleCreateSchema(BaseModel):
    """Schema for creating a new role."""

    name: str = Field(min_length=1, max_length=100)
    display_name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    color: str | None = None
    icon: str | None = None
    permissions: list[str] = []  # "resource:action" patterns
    level: int | None = None
    parent_role_id: int | None = None
    is_default: bool = False


class RoleUpdateSchema(BaseModel):
    """Schema for updating a role. Omitted fields are left untouched."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    display_name: str | None = None
    description: str | None = None
    color: str | None = None
    icon: str | None = None
    permissions: list[str] | None = None
    level: int | None = None
    is_active: bool | None = None


class RoleCloneSchema(BaseModel):
    """Schema for cloning a role."""

    name: str = Field(min_length=1, max_length=100)


class RoleReorderSchema(BaseModel):
    """Schema for reordering roles, most senior first."""

    role_ids: list[int]


class UserRoleSchema(BaseModel):
    """Schema representing a user's live role assignment."""

    model_config = ConfigDict(from_attributes=True)

    assignment_id: int
    user_id: int
    role_id: int
    name: str
    display_name: str
    level: int
    is_primary: bool
    is_temporary: bool
    expires_at: datetime | None = None
    assigned_by: str | None = None
    reason: str | None = None


class UserRoleAssignmentSchema(BaseModel):
    """Schema for assigning a role to a user."""

    role_id: int
    expires_at: datetime | None = None
    reason: str | None = None
    is_primary: bool = False


class UserPermissionOverrideSchema(BaseModel):
    """Schema for granting or denying a permission directly to a user."""

    permission: str  # "resource:action" pattern
    is_denied: bool = False
    expires_at: datetime | None = None
    reason: str | None = None


class EffectivePermissionSchema(BaseModel):
    """Schema representing one resolved permission."""

    model_config = ConfigDict(from_attributes=True)

    resource: str
    action: str
    source: PermissionSource
    granted: bool
    role_id: int | None = None
    expires_at: datetime | None = None


class PermissionCheckSchema(BaseModel):
    """A permission to test for the current user."""

    resource: str
    action: str
    scope: str = "ALL"


class PermissionCheckRequest(BaseModel):
    """Schema for checking several permissions at once."""

    checks: list[PermissionCheckSchema]
    mode: str = Field(default="all", pattern="^(all|any)$")


class PermissionCheckResponse(BaseModel):
    """Result of a permission check."""

    allowed: bool


class HighestRoleSchema(BaseModel):
    """The most senior role of the caller."""

    id: int
    name: str
    level: int


class AuthContextSchema(BaseModel):
    """Authorization context of the current caller."""

    userId: int
    username: str
    roles: list[str]
    permissions: list[str]
    highestRole: HighestRoleSchema | None = None
    role: str | None = None


class UserPermissionSchema(BaseModel):
    """Schema representing a per-user override."""

    id: int
    user_id: int
    permission: str
    is_denied: bool
    is_active: bool
    expires_at: datetime | None = None
    granted_by: str | None = None
    reason: str | None = None
