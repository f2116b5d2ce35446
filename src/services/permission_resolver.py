# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Effective permission resolution.

A user's effective permissions are computed from two sources:

1. Live role assignments. Each role contributes its active permission
   links. When two roles grant the same ``resource:action`` key, the entry
   of the role with the higher level is kept. On equal levels the role that
   was evaluated first keeps the entry; roles are evaluated in
   ``get_user_roles`` order (primary first, then level descending, then
   assignment id ascending).
2. Live per-user overrides. An override replaces whatever the roles
   produced for its key, in either direction.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Session, selectinload

from src.models import (
    Permission,
    PermissionSource,
    Role,
    RolePermission,
    UserPermission,
    UserRole,
)
from src.rbac.patterns import PermissionPattern
from src.services.permission_cache import (
    PermissionCache,
    permissions_key,
    user_roles_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionCheck:
    """A single (resource, action) requirement."""

    resource: str
    action: str
    scope: str = "ALL"


@dataclass(frozen=True)
class EffectivePermission:
    """Resolved grant or deny of one ``resource:action`` key for a user."""

    resource: str
    action: str
    source: PermissionSource
    granted: bool
    role_id: int | None = None
    role_level: int | None = None
    expires_at: datetime | None = None

    @property
    def key(self) -> str:
        return f"{self.resource}:{self.action}"


@dataclass(frozen=True)
class AssignedRole:
    """Detached snapshot of a live role assignment, safe to cache."""

    assignment_id: int
    user_id: int
    role_id: int
    name: str
    display_name: str
    level: int
    priority: int
    color: str | None
    is_system: bool
    is_primary: bool
    is_temporary: bool
    expires_at: datetime | None
    assigned_by: str | None
    assigned_at: datetime | None
    reason: str | None
    permissions: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @classmethod
    def from_model(cls, user_role: UserRole) -> "AssignedRole":
        role = user_role.role
        permissions = tuple(
            (rp.permission.resource, rp.permission.action)
            for rp in role.role_permissions
            if rp.is_active and rp.permission.is_active
        )
        return cls(
            assignment_id=user_role.id,
            user_id=user_role.user_id,
            role_id=role.id,
            name=role.name,
            display_name=role.display_name,
            level=role.level,
            priority=role.priority,
            color=role.color,
            is_system=role.is_system,
            is_primary=user_role.is_primary,
            is_temporary=user_role.is_temporary,
            expires_at=user_role.expires_at,
            assigned_by=user_role.assigned_by,
            assigned_at=user_role.assigned_at,
            reason=user_role.reason,
            permissions=permissions,
        )


def has_expired_entry(entries, now: datetime) -> bool:
    """True if any cached snapshot carries an expiry that has already passed."""
    return any(
        entry.expires_at is not None and entry.expires_at < now for entry in entries
    )


def live_filter(model, now: datetime):
    """SQL condition selecting active rows that have not expired yet."""
    return sa.and_(
        model.is_active.is_(True),
        sa.or_(model.expires_at.is_(None), model.expires_at >= now),
    )


class PermissionResolver:
    """Computes and caches what a user may do."""

    def __init__(self, db: Session, cache: PermissionCache) -> None:
        self.db = db
        self.cache = cache

    def get_user_roles(self, user_id: int) -> list[AssignedRole]:
        """Return the user's live role assignments.

        Ordered primary first, then by role level descending.
        """
        cache_key = user_roles_key(user_id)
        now = datetime.utcnow()
        cached = self.cache.get(cache_key)
        if cached is not None and not has_expired_entry(cached, now):
            return cached

        user_roles = (
            self.db.query(UserRole)
            .join(UserRole.role)
            .filter(
                UserRole.user_id == user_id,
                live_filter(UserRole, now),
                Role.is_active.is_(True),
                Role.deleted_at.is_(None),
            )
            .options(
                selectinload(UserRole.role)
                .selectinload(Role.role_permissions)
                .selectinload(RolePermission.permission)
            )
            .order_by(UserRole.is_primary.desc(), Role.level.desc(), UserRole.id.asc())
            .all()
        )

        roles = [AssignedRole.from_model(user_role) for user_role in user_roles]
        self.cache.set(cache_key, roles)
        return roles

    def calculate_effective_permissions(self, user_id: int) -> list[EffectivePermission]:
        """Return one effective entry per ``resource:action`` key for the user."""
        cache_key = permissions_key(user_id)
        now = datetime.utcnow()
        cached = self.cache.get(cache_key)
        # An expired override may uncover a role entry, so recompute in full
        if cached is not None and not has_expired_entry(cached, now):
            return cached

        permissions: dict[str, EffectivePermission] = {}

        # 1. Permissions from roles, highest level wins
        for assigned in self.get_user_roles(user_id):
            for resource, action in assigned.permissions:
                key = f"{resource}:{action}"
                current = permissions.get(key)
                if current is not None and current.role_level is not None:
                    if assigned.level <= current.role_level:
                        continue
                permissions[key] = EffectivePermission(
                    resource=resource,
                    action=action,
                    source=PermissionSource.ROLE,
                    granted=True,
                    role_id=assigned.role_id,
                    role_level=assigned.level,
                    expires_at=assigned.expires_at,
                )

        # 2. Direct user overrides always win
        overrides = (
            self.db.query(UserPermission)
            .join(UserPermission.permission)
            .filter(
                UserPermission.user_id == user_id,
                live_filter(UserPermission, now),
                Permission.is_active.is_(True),
            )
            .options(selectinload(UserPermission.permission))
            .order_by(UserPermission.id.asc())
            .all()
        )
        for override in overrides:
            permission = override.permission
            permissions[permission.key] = EffectivePermission(
                resource=permission.resource,
                action=permission.action,
                source=(
                    PermissionSource.OVERRIDE
                    if override.is_denied
                    else PermissionSource.DIRECT
                ),
                granted=not override.is_denied,
                expires_at=override.expires_at,
            )

        result = list(permissions.values())
        self.cache.set(cache_key, result)
        return result

    def has_permission(
        self, user_id: int, resource: str, action: str, scope: str = "ALL"
    ) -> bool:
        """Check a single permission, honouring ``*`` wildcards.

        ``scope`` is accepted for interface compatibility; effective
        permissions are keyed by resource and action only.
        """
        resource = resource.strip().lower()
        action = action.strip().lower()
        permissions = self.calculate_effective_permissions(user_id)

        for permission in permissions:
            if (
                permission.granted
                and permission.resource == resource
                and permission.action == action
            ):
                return True

        return any(
            permission.granted
            and PermissionPattern(permission.resource, permission.action).matches(
                resource, action
            )
            for permission in permissions
        )

    def has_all_permissions(self, user_id: int, checks: list[PermissionCheck]) -> bool:
        for check in checks:
            if not self.has_permission(user_id, check.resource, check.action, check.scope):
                return False
        return True

    def has_any_permission(self, user_id: int, checks: list[PermissionCheck]) -> bool:
        for check in checks:
            if self.has_permission(user_id, check.resource, check.action, check.scope):
                return True
        return False

    def get_highest_role(self, user_id: int) -> AssignedRole | None:
        roles = self.get_user_roles(user_id)
        if not roles:
            return None
        return max(roles, key=lambda assigned: assigned.level)

    def can_manage_role(self, user_id: int, target_role_id: int) -> bool:
        """Return True if the user's highest level is above the target role's level."""
        highest = self.get_highest_role(user_id)
        if highest is None:
            return False

        target = self.db.get(Role, target_role_id)
        if target is None or target.is_deleted:
            return False

        return highest.level > target.level
