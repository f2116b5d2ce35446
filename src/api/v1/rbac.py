# src/api/v1/rbac.py
from fastapi import APIRouter, Depends, HTTPException, status

from src.api.deps import (
    get_auth_context,
    get_role_service,
    require_any_permission,
    require_permission,
)
from src.models import UserPermission, UserRole
from src.schemas.rbac import (
    AuthContextSchema,
    EffectivePermissionSchema,
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionCreateSchema,
    PermissionSchema,
    PermissionStatusSchema,
    RoleCloneSchema,
    RoleCreateSchema,
    RoleReorderSchema,
    RoleUpdateSchema,
    RoleWithPermissionsSchema,
    UserPermissionOverrideSchema,
    UserPermissionSchema,
    UserRoleAssignmentSchema,
    UserRoleSchema,
)
from src.services.authorization_gate import AuthorizationContext
from src.services.permission_resolver import PermissionCheck
from src.services.rbac_service import RoleManagementService, role_to_schema

router = APIRouter()


def _user_role_schema(assignment: UserRole) -> UserRoleSchema:
    return UserRoleSchema(
        assignment_id=assignment.id,
        user_id=assignment.user_id,
        role_id=assignment.role_id,
        name=assignment.role.name,
        display_name=assignment.role.display_name,
        level=assignment.role.level,
        is_primary=assignment.is_primary,
        is_temporary=assignment.is_temporary,
        expires_at=assignment.expires_at,
        assigned_by=assignment.assigned_by,
        reason=assignment.reason,
    )


def _override_schema(override: UserPermission) -> UserPermissionSchema:
    return UserPermissionSchema(
        id=override.id,
        user_id=override.user_id,
        permission=override.permission.key,
        is_denied=override.is_denied,
        is_active=override.is_active,
        expires_at=override.expires_at,
        granted_by=override.granted_by,
        reason=override.reason,
    )


def _ensure_can_manage(
    service: RoleManagementService, context: AuthorizationContext, role_id: int
) -> None:
    """Callers may only manage roles ranked below their own highest role."""
    service.get_role(role_id)
    if context.is_superuser:
        return
    if not service.can_manage_role(context.user_id, role_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot manage a role with a higher or equal level",
        )


def _ensure_level_below_own(
    service: RoleManagementService, context: AuthorizationContext, level: int | None
) -> None:
    """Callers may not rank a role at or above their own highest role."""
    if level is None or context.is_superuser:
        return
    highest = service.get_highest_role(context.user_id)
    if highest is None or level >= highest.level:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot set a role level at or above your own",
        )


# ----------------------------------------------------------------------
# Permission catalog
# ----------------------------------------------------------------------


@router.get("/rbac/permissions", response_model=list[PermissionSchema], summary="List active permissions")
def list_permissions(
    include_inactive: bool = False,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("permissions", "read")),
):
    """Retrieve the permission catalog. Requires permissions:read."""
    return service.list_permissions(include_inactive=include_inactive)


@router.get("/rbac/permissions/by-category", response_model=dict[str, list[PermissionSchema]], summary="Active permissions grouped by category")
def permissions_by_category(
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("permissions", "read")),
):
    """Retrieve the active catalog grouped by category. Requires permissions:read."""
    return service.get_permissions_by_category()


@router.post("/rbac/permissions", response_model=PermissionSchema, status_code=status.HTTP_201_CREATED, summary="Add a permission to the catalog")
def create_permission(
    permission_in: PermissionCreateSchema,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("permissions", "create")),
):
    """Add a new permission. Requires permissions:create."""
    return service.create_permission(permission_in)


@router.patch("/rbac/permissions/{permission_id}", response_model=PermissionSchema, summary="Activate or deactivate a permission")
def set_permission_status(
    permission_id: int,
    status_in: PermissionStatusSchema,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("permissions", "create")),
):
    """Toggle a non-system catalog permission. Requires permissions:create."""
    return service.set_permission_active(permission_id, status_in.is_active)


# ----------------------------------------------------------------------
# Roles
# ----------------------------------------------------------------------


@router.get("/rbac/roles", response_model=list[RoleWithPermissionsSchema], summary="Role hierarchy")
def list_roles(
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "read")),
):
    """Retrieve active roles, most senior first. Requires roles:read."""
    return service.get_role_hierarchy()


@router.post("/rbac/roles/reorder", status_code=status.HTTP_204_NO_CONTENT, summary="Reorder roles")
def reorder_roles(
    order_in: RoleReorderSchema,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "update")),
):
    """Set display priorities from an ordered list of role ids. Requires roles:update."""
    service.reorder_roles(order_in.role_ids)


@router.get("/rbac/roles/{role_id}", response_model=RoleWithPermissionsSchema, summary="Get a role by ID with its permissions")
def get_role(
    role_id: int,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "read")),
):
    """Retrieve a role including its active permissions. Requires roles:read."""
    return role_to_schema(service.get_role(role_id))


@router.post("/rbac/roles", response_model=RoleWithPermissionsSchema, status_code=status.HTTP_201_CREATED, summary="Create a new custom role")
def create_role(
    role_in: RoleCreateSchema,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "create")),
):
    """Create a custom role with the given permissions. Requires roles:create."""
    _ensure_level_below_own(service, context, role_in.level)
    role = service.create_role(role_in, created_by=context.username)
    return role_to_schema(role)


@router.put("/rbac/roles/{role_id}", response_model=RoleWithPermissionsSchema, summary="Update an existing role")
def update_role(
    role_id: int,
    role_in: RoleUpdateSchema,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "update")),
):
    """Update a custom role. A permission list replaces the current set.
    System roles cannot be modified. Requires roles:update.
    """
    _ensure_can_manage(service, context, role_id)
    _ensure_level_below_own(service, context, role_in.level)
    role = service.update_role(role_id, role_in)
    return role_to_schema(role)


@router.delete("/rbac/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a custom role")
def delete_role(
    role_id: int,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "delete")),
):
    """Soft-delete a custom role without active members. Requires roles:delete."""
    _ensure_can_manage(service, context, role_id)
    service.delete_role(role_id)


@router.post("/rbac/roles/{role_id}/clone", response_model=RoleWithPermissionsSchema, status_code=status.HTTP_201_CREATED, summary="Clone a role")
def clone_role(
    role_id: int,
    clone_in: RoleCloneSchema,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "create")),
):
    """Create a copy of a role under a new name. Requires roles:create."""
    role = service.clone_role(role_id, clone_in.name, created_by=context.username)
    return role_to_schema(role)


# ----------------------------------------------------------------------
# User assignments and overrides
# ----------------------------------------------------------------------


@router.get("/rbac/users/{user_id}/roles", response_model=list[UserRoleSchema], summary="Get a user's live role assignments")
def get_user_role_assignments(
    user_id: int,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_any_permission(["users:read", "roles:assign"])),
):
    """Retrieve a user's live role assignments. Requires users:read or roles:assign."""
    return service.get_user_roles(user_id)


@router.post("/rbac/users/{user_id}/roles", response_model=UserRoleSchema, status_code=status.HTTP_201_CREATED, summary="Assign a role to a user")
def assign_role_to_user(
    user_id: int,
    assignment_in: UserRoleAssignmentSchema,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "assign")),
):
    """Assign a role ranked below the caller's own. Requires roles:assign."""
    _ensure_can_manage(service, context, assignment_in.role_id)
    assignment = service.assign_role(
        user_id,
        assignment_in.role_id,
        expires_at=assignment_in.expires_at,
        reason=assignment_in.reason,
        assigned_by=context.username,
        is_primary=assignment_in.is_primary,
    )
    return _user_role_schema(assignment)


@router.delete("/rbac/users/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove a role from a user")
def remove_role_from_user(
    user_id: int,
    role_id: int,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "assign")),
):
    """Deactivate a role assignment. Requires roles:assign."""
    _ensure_can_manage(service, context, role_id)
    service.remove_role(user_id, role_id)


@router.put("/rbac/users/{user_id}/roles/{role_id}/primary", response_model=UserRoleSchema, summary="Make a role the user's primary role")
def set_primary_role(
    user_id: int,
    role_id: int,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("roles", "assign")),
):
    """Move the primary flag to one of the user's roles. Requires roles:assign."""
    return _user_role_schema(service.set_primary_role(user_id, role_id))


@router.get("/rbac/users/{user_id}/permissions", response_model=list[EffectivePermissionSchema], summary="Get a user's effective permissions")
def get_user_permissions(
    user_id: int,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("users", "read")),
):
    """Retrieve the resolved permissions of a user. Requires users:read."""
    return service.calculate_effective_permissions(user_id)


@router.post("/rbac/users/{user_id}/overrides", response_model=UserPermissionSchema, status_code=status.HTTP_201_CREATED, summary="Grant or deny a permission to a user")
def set_user_override(
    user_id: int,
    override_in: UserPermissionOverrideSchema,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("permissions", "grant")),
):
    """Create a direct grant or deny for a user. Requires permissions:grant."""
    if override_in.is_denied:
        override = service.deny_permission(
            user_id,
            override_in.permission,
            granted_by=context.username,
            expires_at=override_in.expires_at,
            reason=override_in.reason,
        )
    else:
        override = service.grant_permission(
            user_id,
            override_in.permission,
            granted_by=context.username,
            expires_at=override_in.expires_at,
            reason=override_in.reason,
        )
    return _override_schema(override)


@router.delete("/rbac/users/{user_id}/overrides/{permission}", status_code=status.HTTP_204_NO_CONTENT, summary="Revoke a user's override")
def revoke_user_override(
    user_id: int,
    permission: str,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(require_permission("permissions", "grant")),
):
    """Deactivate a direct grant or deny. Requires permissions:grant."""
    service.revoke_override(user_id, permission)


# ----------------------------------------------------------------------
# Current user
# ----------------------------------------------------------------------


@router.get("/rbac/me", response_model=AuthContextSchema, summary="Get the caller's authorization context")
def get_me(context: AuthorizationContext = Depends(get_auth_context)):
    """Return the caller's roles and permissions as seen by the gate."""
    return context.to_dict()


@router.get("/rbac/me/permissions", response_model=list[EffectivePermissionSchema], summary="Get current user's effective permissions")
def get_my_permissions(
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(get_auth_context),
):
    """Retrieve the caller's effective permissions including denied entries."""
    return service.calculate_effective_permissions(context.user_id)


@router.post("/rbac/me/check", response_model=PermissionCheckResponse, summary="Check permissions for the caller")
def check_my_permissions(
    check_in: PermissionCheckRequest,
    service: RoleManagementService = Depends(get_role_service),
    context: AuthorizationContext = Depends(get_auth_context),
):
    """Evaluate a list of permissions in ``all`` or ``any`` mode."""
    if context.is_superuser:
        return PermissionCheckResponse(allowed=True)

    checks = [PermissionCheck(c.resource, c.action, c.scope) for c in check_in.checks]
    if check_in.mode == "any":
        allowed = service.has_any_permission(context.user_id, checks)
    else:
        allowed = service.has_all_permissions(context.user_id, checks)
    return PermissionCheckResponse(allowed=allowed)
