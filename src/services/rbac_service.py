# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Role management service.

Authoritative mutation surface over roles, the permission catalog, role
assignments and per-user overrides. Every mutation runs in a single
transaction and invalidates the affected cache entries after commit.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Session, selectinload

from src.models import (
    Permission,
    RiskLevel,
    Role,
    RolePermission,
    User,
    UserPermission,
    UserRole,
)
from src.rbac.patterns import PermissionPattern
from src.schemas.rbac import (
    PermissionCreateSchema,
    RoleCreateSchema,
    RoleSchema,
    RoleUpdateSchema,
    RoleWithPermissionsSchema,
)
from src.services.permission_cache import ROLE_HIERARCHY_KEY, PermissionCache
from src.services.permission_resolver import (
    AssignedRole,
    EffectivePermission,
    PermissionCheck,
    PermissionResolver,
    live_filter,
)

logger = logging.getLogger(__name__)

# Gap left between a new role and the most senior existing one
LEVEL_STEP = 10

DEFAULT_ROLE_COLOR = "#95A5A6"

# Role columns that may not be cleared through an update
_REQUIRED_ROLE_FIELDS = {"name", "display_name", "level", "is_active"}


class RbacServiceError(Exception):
    """Base exception for role management errors."""

    status_code = 400


class RoleNotFoundError(RbacServiceError):
    """Role does not exist, is inactive or was deleted."""

    status_code = 404


class DuplicateRoleError(RbacServiceError):
    """A non-deleted role with the same name exists."""

    status_code = 409


class SystemRoleImmutableError(RbacServiceError):
    """System roles cannot be edited or deleted."""

    status_code = 403


class RoleInUseError(RbacServiceError):
    """Role still has active assignments."""

    status_code = 409


class DuplicateAssignmentError(RbacServiceError):
    """User already holds the role."""

    status_code = 409


class AssignmentNotFoundError(RbacServiceError):
    """User does not hold the role."""

    status_code = 404


class UserNotFoundError(RbacServiceError):
    """User does not exist."""

    status_code = 404


class PermissionNotFoundError(RbacServiceError):
    """No active catalog permission matches."""

    status_code = 404


class DuplicatePermissionError(RbacServiceError):
    """Catalog already holds a permission with the same resource, action and scope."""

    status_code = 409


class SystemPermissionImmutableError(RbacServiceError):
    """System permissions cannot be toggled."""

    status_code = 403


class OverrideNotFoundError(RbacServiceError):
    """User has no live override for the permission."""

    status_code = 404


def _permission_pattern(permission: Permission) -> str:
    return str(
        PermissionPattern(permission.resource, permission.action, permission.scope)
    )


def role_to_schema(role: Role, user_count: int = 0) -> RoleWithPermissionsSchema:
    """Build the response schema of a role including its active permissions."""
    permissions = sorted(
        _permission_pattern(rp.permission)
        for rp in role.role_permissions
        if rp.is_active and rp.permission.is_active
    )
    return RoleWithPermissionsSchema(
        **RoleSchema.model_validate(role).model_dump(),
        permissions=permissions,
        user_count=user_count,
    )


class RoleManagementService:
    """Role, permission and assignment management."""

    def __init__(self, db: Session, cache: PermissionCache) -> None:
        """Initialize the service.

        Args:
            db: Database session used for reads and writes.
            cache: Shared permission cache to read from and invalidate.
        """
        self.db = db
        self.cache = cache
        self.resolver = PermissionResolver(db, cache)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Commit the block as one unit, rolling back on any error."""
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(
        self, data: RoleCreateSchema, created_by: str | None = None
    ) -> Role:
        """Create a role and link the given permissions.

        Raises:
            InvalidPermissionPatternError: A pattern is malformed.
            DuplicateRoleError: The name is taken by a non-deleted role.
            PermissionNotFoundError: A pattern has no active catalog entry.
        """
        patterns = PermissionPattern.parse_many(data.permissions)

        if self.get_role_by_name(data.name) is not None:
            raise DuplicateRoleError(f"Role with name {data.name} already exists")

        level = data.level if data.level is not None else self._next_level()

        with self._transaction():
            permissions = self._resolve_patterns(patterns)
            role = Role(
                name=data.name,
                display_name=data.display_name,
                description=data.description,
                color=data.color or DEFAULT_ROLE_COLOR,
                icon=data.icon,
                level=level,
                parent_role_id=data.parent_role_id,
                is_default=data.is_default,
                is_active=True,
                is_system=False,
            )
            self.db.add(role)
            self.db.flush()

            for permission in permissions:
                self.db.add(
                    RolePermission(
                        role_id=role.id,
                        permission_id=permission.id,
                        granted_by=created_by,
                    )
                )

        self.db.refresh(role)
        self.cache.invalidate_hierarchy()
        logger.info(
            f"Created role {role.name} (level {role.level}) "
            f"with {len(permissions)} permissions"
        )
        return role

    def update_role(self, role_id: int, updates: RoleUpdateSchema) -> Role:
        """Update a role. A permission list replaces the current set entirely.

        Raises:
            RoleNotFoundError: Role missing or deleted.
            SystemRoleImmutableError: Role is a system role.
            DuplicateRoleError: New name is taken.
        """
        role = self._get_role(role_id)
        if role.is_system:
            raise SystemRoleImmutableError(f"Cannot modify system role {role.name}")

        fields = updates.model_dump(exclude_unset=True)
        raw_permissions = fields.pop("permissions", None)
        patterns = (
            PermissionPattern.parse_many(raw_permissions)
            if raw_permissions is not None
            else None
        )

        new_name = fields.get("name")
        if new_name and new_name != role.name:
            existing = self.get_role_by_name(new_name)
            if existing is not None and existing.id != role.id:
                raise DuplicateRoleError(f"Role with name {new_name} already exists")

        with self._transaction():
            for key, value in fields.items():
                if value is None and key in _REQUIRED_ROLE_FIELDS:
                    continue
                setattr(role, key, value)

            if patterns is not None:
                self._sync_role_permissions(role, patterns)

        self._invalidate_role(role.id)
        self.db.refresh(role)
        logger.info(f"Updated role {role.name}")
        return role

    def delete_role(self, role_id: int) -> None:
        """Soft-delete a role.

        Raises:
            RoleNotFoundError: Role missing or already deleted.
            SystemRoleImmutableError: Role is a system role.
            RoleInUseError: Role still has active assignments.
        """
        role = self._get_role(role_id)
        if role.is_system:
            raise SystemRoleImmutableError(f"Cannot delete system role {role.name}")

        active_assignments = (
            self.db.query(sa.func.count(UserRole.id))
            .filter(UserRole.role_id == role.id, UserRole.is_active.is_(True))
            .scalar()
        )
        if active_assignments:
            raise RoleInUseError(
                f"Cannot delete role {role.name} with {active_assignments} active users"
            )

        with self._transaction():
            role.deleted_at = datetime.utcnow()
            role.is_active = False

        self._invalidate_role(role.id)
        logger.info(f"Deleted role {role.name}")

    def clone_role(
        self, source_role_id: int, new_name: str, created_by: str | None = None
    ) -> Role:
        """Create a new role with the permissions and level of an existing one."""
        source = self._get_role(source_role_id)
        permissions = [
            _permission_pattern(rp.permission)
            for rp in source.role_permissions
            if rp.is_active and rp.permission.is_active
        ]

        return self.create_role(
            RoleCreateSchema(
                name=new_name,
                display_name=f"{source.display_name} (Copy)",
                description=source.description,
                color=source.color,
                icon=source.icon,
                permissions=permissions,
                level=source.level,
            ),
            created_by=created_by,
        )

    def reorder_roles(self, ordered_role_ids: list[int]) -> None:
        """Assign display priorities, the first id getting the highest."""
        roles = {
            role.id: role
            for role in self.db.query(Role)
            .filter(Role.id.in_(ordered_role_ids), Role.deleted_at.is_(None))
            .all()
        }
        missing = [role_id for role_id in ordered_role_ids if role_id not in roles]
        if missing:
            raise RoleNotFoundError(f"Roles not found: {missing}")

        with self._transaction():
            total = len(ordered_role_ids)
            for index, role_id in enumerate(ordered_role_ids):
                roles[role_id].priority = total - index

        self.cache.clear()

    def get_role(self, role_id: int) -> Role:
        """Return a non-deleted role with its permission links loaded."""
        return self._get_role(role_id)

    def get_role_by_name(self, name: str) -> Role | None:
        """Get a non-deleted role by its name."""
        return (
            self.db.query(Role)
            .filter(Role.name == name, Role.deleted_at.is_(None))
            .first()
        )

    def get_role_hierarchy(self) -> list[RoleWithPermissionsSchema]:
        """Return active roles, most senior first, with member counts."""
        cached = self.cache.get(ROLE_HIERARCHY_KEY)
        if cached is not None:
            return cached

        now = datetime.utcnow()
        member_counts = dict(
            self.db.query(UserRole.role_id, sa.func.count(UserRole.id))
            .filter(live_filter(UserRole, now))
            .group_by(UserRole.role_id)
            .all()
        )
        roles = (
            self.db.query(Role)
            .filter(Role.is_active.is_(True), Role.deleted_at.is_(None))
            .options(
                selectinload(Role.role_permissions).selectinload(
                    RolePermission.permission
                )
            )
            .order_by(Role.level.desc(), Role.priority.desc(), Role.id.asc())
            .all()
        )

        hierarchy = [
            role_to_schema(role, member_counts.get(role.id, 0)) for role in roles
        ]
        self.cache.set(ROLE_HIERARCHY_KEY, hierarchy)
        return hierarchy

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def assign_role(
        self,
        user_id: int,
        role_id: int,
        expires_at: datetime | None = None,
        reason: str | None = None,
        assigned_by: str | None = None,
        is_primary: bool = False,
    ) -> UserRole:
        """Assign a role to a user.

        Expired assignments that were never deactivated do not count as
        duplicates; they are deactivated as part of the new assignment.

        Raises:
            UserNotFoundError: User does not exist.
            RoleNotFoundError: Role missing, inactive or deleted.
            DuplicateAssignmentError: User already holds the role.
        """
        self._require_user(user_id)
        role = (
            self.db.query(Role)
            .filter(
                Role.id == role_id,
                Role.is_active.is_(True),
                Role.deleted_at.is_(None),
            )
            .first()
        )
        if role is None:
            raise RoleNotFoundError("Role not found or inactive")

        now = datetime.utcnow()
        active = (
            self.db.query(UserRole)
            .filter(
                UserRole.user_id == user_id,
                UserRole.role_id == role_id,
                UserRole.is_active.is_(True),
            )
            .all()
        )
        if any(row.expires_at is None or row.expires_at >= now for row in active):
            raise DuplicateAssignmentError(f"User already has role {role.name}")

        with self._transaction():
            for stale in active:
                stale.is_active = False
                stale.is_primary = False

            if is_primary:
                self._clear_primary(user_id)

            assignment = UserRole(
                user_id=user_id,
                role_id=role_id,
                assigned_by=assigned_by,
                is_active=True,
                is_primary=is_primary,
                is_temporary=expires_at is not None,
                expires_at=expires_at,
                reason=reason,
            )
            self.db.add(assignment)

        self.cache.invalidate_user(user_id)
        self.cache.invalidate_hierarchy()
        self.db.refresh(assignment)
        logger.info(f"Assigned role {role.name} to user {user_id} by {assigned_by}")
        return assignment

    def remove_role(self, user_id: int, role_id: int) -> None:
        """Deactivate a user's role assignment.

        Raises:
            AssignmentNotFoundError: User has no active assignment of the role.
        """
        assignment = self._get_active_assignment(user_id, role_id)

        with self._transaction():
            assignment.is_active = False
            assignment.is_primary = False

        self.cache.invalidate_user(user_id)
        self.cache.invalidate_hierarchy()
        logger.info(f"Removed role {role_id} from user {user_id}")

    def set_primary_role(self, user_id: int, role_id: int) -> UserRole:
        """Mark one of the user's live assignments as primary."""
        assignment = self._get_active_assignment(user_id, role_id)

        with self._transaction():
            self._clear_primary(user_id)
            assignment.is_primary = True

        self.cache.invalidate_user(user_id)
        return assignment

    def get_user_roles(self, user_id: int) -> list[AssignedRole]:
        return self.resolver.get_user_roles(user_id)

    # ------------------------------------------------------------------
    # User overrides
    # ------------------------------------------------------------------

    def grant_permission(
        self,
        user_id: int,
        permission: str,
        granted_by: str | None = None,
        expires_at: datetime | None = None,
        reason: str | None = None,
    ) -> UserPermission:
        """Grant a permission directly to a user, regardless of roles."""
        return self._set_override(
            user_id, permission, False, granted_by, expires_at, reason
        )

    def deny_permission(
        self,
        user_id: int,
        permission: str,
        granted_by: str | None = None,
        expires_at: datetime | None = None,
        reason: str | None = None,
    ) -> UserPermission:
        """Deny a permission to a user even if a role grants it."""
        return self._set_override(
            user_id, permission, True, granted_by, expires_at, reason
        )

    def revoke_override(self, user_id: int, permission: str) -> None:
        """Deactivate the user's live override for a permission.

        Raises:
            OverrideNotFoundError: No live override exists.
        """
        catalog_entry = self._resolve_pattern(PermissionPattern.parse(permission))
        overrides = (
            self.db.query(UserPermission)
            .filter(
                UserPermission.user_id == user_id,
                UserPermission.permission_id == catalog_entry.id,
                live_filter(UserPermission, datetime.utcnow()),
            )
            .all()
        )
        if not overrides:
            raise OverrideNotFoundError(
                f"User {user_id} has no override for {permission}"
            )

        with self._transaction():
            for override in overrides:
                override.is_active = False

        self.cache.invalidate_user(user_id)
        logger.info(f"Revoked override {permission} for user {user_id}")

    # ------------------------------------------------------------------
    # Permission catalog
    # ------------------------------------------------------------------

    def create_permission(self, data: PermissionCreateSchema) -> Permission:
        """Add a permission to the catalog.

        Raises:
            InvalidPermissionPatternError: Resource, action or scope malformed.
            DuplicatePermissionError: Same resource, action and scope exists.
        """
        pattern = PermissionPattern.parse(f"{data.resource}:{data.action}:{data.scope}")

        existing = (
            self.db.query(Permission)
            .filter(
                Permission.resource == pattern.resource,
                Permission.action == pattern.action,
                Permission.scope == pattern.scope,
            )
            .first()
        )
        if existing is not None:
            raise DuplicatePermissionError(f"Permission {pattern} already exists")

        with self._transaction():
            permission = Permission(
                name=data.name,
                display_name=data.display_name,
                description=data.description,
                category=data.category,
                resource=pattern.resource,
                action=pattern.action,
                scope=pattern.scope,
                risk_level=data.risk_level,
                requires_mfa=data.requires_mfa,
                audit_required=data.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL),
                is_active=True,
                is_system=False,
            )
            self.db.add(permission)

        self.db.refresh(permission)
        logger.info(f"Created permission {pattern}")
        return permission

    def set_permission_active(self, permission_id: int, is_active: bool) -> Permission:
        """Activate or deactivate a catalog permission."""
        permission = self.db.get(Permission, permission_id)
        if permission is None:
            raise PermissionNotFoundError(f"Permission {permission_id} not found")
        if permission.is_system:
            raise SystemPermissionImmutableError(
                f"Cannot change system permission {permission.name}"
            )

        with self._transaction():
            permission.is_active = is_active

        # Any user and any role may be affected
        self.cache.clear()
        return permission

    def list_permissions(self, include_inactive: bool = False) -> list[Permission]:
        query = self.db.query(Permission)
        if not include_inactive:
            query = query.filter(Permission.is_active.is_(True))
        return query.order_by(
            Permission.category, Permission.resource, Permission.action
        ).all()

    def get_permissions_by_category(self) -> dict[str, list[Permission]]:
        """Group the active catalog by category for display."""
        grouped: dict[str, list[Permission]] = {}
        for permission in self.list_permissions():
            grouped.setdefault(permission.category, []).append(permission)
        return grouped

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def calculate_effective_permissions(self, user_id: int) -> list[EffectivePermission]:
        return self.resolver.calculate_effective_permissions(user_id)

    def has_permission(
        self, user_id: int, resource: str, action: str, scope: str = "ALL"
    ) -> bool:
        return self.resolver.has_permission(user_id, resource, action, scope)

    def has_all_permissions(self, user_id: int, checks: list[PermissionCheck]) -> bool:
        return self.resolver.has_all_permissions(user_id, checks)

    def has_any_permission(self, user_id: int, checks: list[PermissionCheck]) -> bool:
        return self.resolver.has_any_permission(user_id, checks)

    def get_highest_role(self, user_id: int) -> AssignedRole | None:
        return self.resolver.get_highest_role(user_id)

    def can_manage_role(self, user_id: int, target_role_id: int) -> bool:
        return self.resolver.can_manage_role(user_id, target_role_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_role(self, role_id: int) -> Role:
        role = (
            self.db.query(Role)
            .filter(Role.id == role_id, Role.deleted_at.is_(None))
            .options(
                selectinload(Role.role_permissions).selectinload(
                    RolePermission.permission
                )
            )
            .first()
        )
        if role is None:
            raise RoleNotFoundError(f"Role {role_id} not found")
        return role

    def _require_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def _get_active_assignment(self, user_id: int, role_id: int) -> UserRole:
        assignment = (
            self.db.query(UserRole)
            .filter(
                UserRole.user_id == user_id,
                UserRole.role_id == role_id,
                live_filter(UserRole, datetime.utcnow()),
            )
            .first()
        )
        if assignment is None:
            raise AssignmentNotFoundError("Role assignment not found")
        return assignment

    def _clear_primary(self, user_id: int) -> None:
        for row in (
            self.db.query(UserRole)
            .filter(UserRole.user_id == user_id, UserRole.is_primary.is_(True))
            .all()
        ):
            row.is_primary = False

    def _next_level(self) -> int:
        max_level = (
            self.db.query(sa.func.max(Role.level))
            .filter(Role.deleted_at.is_(None))
            .scalar()
        )
        return (max_level or 0) + LEVEL_STEP

    def _resolve_pattern(self, pattern: PermissionPattern) -> Permission:
        permission = (
            self.db.query(Permission)
            .filter(
                Permission.resource == pattern.resource,
                Permission.action == pattern.action,
                Permission.scope == pattern.scope,
                Permission.is_active.is_(True),
            )
            .first()
        )
        if permission is None:
            raise PermissionNotFoundError(f"Permission {pattern} not found")
        return permission

    def _resolve_patterns(self, patterns: list[PermissionPattern]) -> list[Permission]:
        """Map patterns to active catalog entries, failing on the first unknown one."""
        return [self._resolve_pattern(pattern) for pattern in patterns]

    def _sync_role_permissions(
        self, role: Role, patterns: list[PermissionPattern]
    ) -> None:
        """Make the role's active permission links equal to ``patterns``."""
        wanted = {permission.id for permission in self._resolve_patterns(patterns)}

        links = (
            self.db.query(RolePermission)
            .filter(RolePermission.role_id == role.id)
            .all()
        )
        for link in links:
            link.is_active = link.permission_id in wanted

        existing = {link.permission_id for link in links}
        for permission_id in wanted - existing:
            self.db.add(
                RolePermission(role_id=role.id, permission_id=permission_id)
            )

    def _set_override(
        self,
        user_id: int,
        permission: str,
        is_denied: bool,
        granted_by: str | None,
        expires_at: datetime | None,
        reason: str | None,
    ) -> UserPermission:
        self._require_user(user_id)
        catalog_entry = self._resolve_pattern(PermissionPattern.parse(permission))

        with self._transaction():
            # A user holds at most one active override per permission
            for previous in (
                self.db.query(UserPermission)
                .filter(
                    UserPermission.user_id == user_id,
                    UserPermission.permission_id == catalog_entry.id,
                    UserPermission.is_active.is_(True),
                )
                .all()
            ):
                previous.is_active = False

            override = UserPermission(
                user_id=user_id,
                permission_id=catalog_entry.id,
                is_denied=is_denied,
                is_active=True,
                expires_at=expires_at,
                granted_by=granted_by,
                reason=reason,
            )
            self.db.add(override)

        self.cache.invalidate_user(user_id)
        self.db.refresh(override)
        logger.info(
            f"{'Denied' if is_denied else 'Granted'} {permission} "
            f"for user {user_id} by {granted_by}"
        )
        return override

    def _invalidate_role(self, role_id: int) -> None:
        """Drop the hierarchy and every cached entry of users holding the role."""
        self.cache.invalidate_hierarchy()
        user_ids = {
            user_id
            for (user_id,) in self.db.query(UserRole.user_id)
            .filter(UserRole.role_id == role_id)
            .distinct()
            .all()
        }
        self.cache.invalidate_users(user_ids)
