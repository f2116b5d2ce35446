# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for rbac_service."""

from datetime import datetime, timedelta

import pytest

from src.models import RiskLevel, Role, RolePermission, UserPermission, UserRole
from src.rbac.patterns import InvalidPermissionPatternError
from src.schemas.rbac import (
    PermissionCreateSchema,
    RoleCreateSchema,
    RoleUpdateSchema,
)
from src.services.permission_cache import ROLE_HIERARCHY_KEY, permissions_key
from src.services.rbac_service import (
    AssignmentNotFoundError,
    DuplicateAssignmentError,
    DuplicatePermissionError,
    DuplicateRoleError,
    OverrideNotFoundError,
    PermissionNotFoundError,
    RoleInUseError,
    RoleNotFoundError,
    SystemPermissionImmutableError,
    SystemRoleImmutableError,
    UserNotFoundError,
)


def active_permissions(role: Role) -> set[str]:
    return {
        rp.permission.key
        for rp in role.role_permissions
        if rp.is_active and rp.permission.is_active
    }


# ----------------------------------------------------------------------
# Roles
# ----------------------------------------------------------------------


def test_create_role_links_permissions(seeded, service):
    role = service.create_role(
        RoleCreateSchema(
            name="ASSET_CLERK",
            display_name="Asset Clerk",
            permissions=["equipment:read", "Equipment:Update", "equipment:read"],
        ),
        created_by="admin",
    )

    assert role.id is not None
    assert role.is_system is False
    assert role.color == "#95A5A6"
    assert active_permissions(role) == {"equipment:read", "equipment:update"}
    assert all(rp.granted_by == "admin" for rp in role.role_permissions)


def test_create_role_defaults_level_above_highest(seeded, service):
    role = service.create_role(RoleCreateSchema(name="TOP", display_name="Top"))
    # SUPER_ADMIN sits at 100
    assert role.level == 110


def test_create_role_duplicate_name(seeded, service):
    with pytest.raises(DuplicateRoleError):
        service.create_role(RoleCreateSchema(name="VIEWER", display_name="Viewer"))


def test_create_role_rejects_malformed_pattern(seeded, service):
    with pytest.raises(InvalidPermissionPatternError):
        service.create_role(
            RoleCreateSchema(name="BROKEN", display_name="Broken", permissions=["x"])
        )
    assert service.get_role_by_name("BROKEN") is None


def test_create_role_unknown_permission_rolls_back(seeded, service):
    with pytest.raises(PermissionNotFoundError):
        service.create_role(
            RoleCreateSchema(
                name="GHOST",
                display_name="Ghost",
                permissions=["equipment:read", "spaceships:launch"],
            )
        )
    assert service.get_role_by_name("GHOST") is None


def test_create_role_invalidates_hierarchy(seeded, service, cache):
    service.get_role_hierarchy()
    assert ROLE_HIERARCHY_KEY in cache

    service.create_role(RoleCreateSchema(name="NEW", display_name="New", level=5))
    assert ROLE_HIERARCHY_KEY not in cache


def test_update_role_replaces_permission_set(seeded, service, make_role):
    role = make_role("DESK", ["tickets:read", "tickets:update"], level=45)

    updated = service.update_role(
        role.id,
        RoleUpdateSchema(
            display_name="Help Desk", permissions=["tickets:read", "tickets:close"]
        ),
    )

    assert updated.display_name == "Help Desk"
    assert active_permissions(updated) == {"tickets:read", "tickets:close"}
    # Dropped links are deactivated, not deleted
    links = service.db.query(RolePermission).filter_by(role_id=role.id).all()
    assert len(links) == 3


def test_update_role_without_permissions_keeps_set(seeded, service, make_role):
    role = make_role("DESK", ["tickets:read"], level=45)
    updated = service.update_role(role.id, RoleUpdateSchema(description="Desk"))
    assert updated.description == "Desk"
    assert active_permissions(updated) == {"tickets:read"}


def test_update_role_reactivates_link(seeded, service, make_role):
    role = make_role("DESK", ["tickets:read"], level=45)
    service.update_role(role.id, RoleUpdateSchema(permissions=[]))
    updated = service.update_role(
        role.id, RoleUpdateSchema(permissions=["tickets:read"])
    )
    assert active_permissions(updated) == {"tickets:read"}


def test_update_role_rename_conflict(seeded, service, make_role):
    role = make_role("DESK", [], level=45)
    with pytest.raises(DuplicateRoleError):
        service.update_role(role.id, RoleUpdateSchema(name="VIEWER"))


def test_update_role_unknown_permission_keeps_old_set(seeded, service, make_role):
    role = make_role("DESK", ["tickets:read"], level=45)
    with pytest.raises(PermissionNotFoundError):
        service.update_role(
            role.id, RoleUpdateSchema(permissions=["tickets:read", "nope:nope"])
        )
    assert active_permissions(service.get_role(role.id)) == {"tickets:read"}


def test_system_roles_are_immutable(seeded, service):
    admin = service.get_role_by_name("ADMIN")
    with pytest.raises(SystemRoleImmutableError):
        service.update_role(admin.id, RoleUpdateSchema(display_name="Boss"))
    with pytest.raises(SystemRoleImmutableError):
        service.delete_role(admin.id)


def test_delete_role_succeeds_once(seeded, service, make_role):
    role = make_role("TEMP", [], level=45)

    service.delete_role(role.id)
    deleted = service.db.get(Role, role.id)
    assert deleted.deleted_at is not None
    assert deleted.is_active is False

    with pytest.raises(RoleNotFoundError):
        service.delete_role(role.id)


def test_delete_role_in_use(seeded, service, make_role, make_user):
    role = make_role("TEMP", [], level=45)
    service.assign_role(make_user().id, role.id)

    with pytest.raises(RoleInUseError):
        service.delete_role(role.id)


def test_deleted_role_name_can_be_reused(seeded, service, make_role):
    role = make_role("TEMP", [], level=45)
    service.delete_role(role.id)

    again = make_role("TEMP", [], level=45)
    assert again.id != role.id


def test_clone_role(seeded, service):
    support = service.get_role_by_name("SUPPORT")
    clone = service.clone_role(support.id, "SUPPORT_EU", created_by="admin")

    assert clone.display_name == "Support (Copy)"
    assert clone.level == support.level
    assert clone.is_system is False
    assert active_permissions(clone) == active_permissions(support)


def test_clone_missing_role(seeded, service):
    with pytest.raises(RoleNotFoundError):
        service.clone_role(9999, "NOPE")


def test_reorder_roles(seeded, service, make_role):
    first = make_role("FIRST", [], level=45)
    second = make_role("SECOND", [], level=45)

    service.reorder_roles([second.id, first.id])

    assert service.get_role(second.id).priority == 2
    assert service.get_role(first.id).priority == 1
    with pytest.raises(RoleNotFoundError):
        service.reorder_roles([first.id, 9999])


def test_role_hierarchy(seeded, service, viewer_user):
    hierarchy = service.get_role_hierarchy()

    assert [role.name for role in hierarchy][:2] == ["SUPER_ADMIN", "ADMIN"]
    viewer = next(role for role in hierarchy if role.name == "VIEWER")
    assert viewer.user_count == 1
    assert "equipment:read" in viewer.permissions
    assert service.get_role_hierarchy() is hierarchy


# ----------------------------------------------------------------------
# Assignments
# ----------------------------------------------------------------------


def test_assign_role_unknown_user(seeded, service):
    with pytest.raises(UserNotFoundError):
        service.assign_role(9999, service.get_role_by_name("VIEWER").id)


def test_assign_inactive_role(seeded, service, make_user, make_role):
    role = make_role("DORMANT", [], level=45)
    service.update_role(role.id, RoleUpdateSchema(is_active=False))
    with pytest.raises(RoleNotFoundError):
        service.assign_role(make_user().id, role.id)


def test_duplicate_assignment(seeded, service, viewer_user):
    viewer = service.get_role_by_name("VIEWER")
    with pytest.raises(DuplicateAssignmentError):
        service.assign_role(viewer_user.id, viewer.id)


def test_expired_assignment_can_be_renewed(seeded, service, make_user):
    user = make_user()
    viewer = service.get_role_by_name("VIEWER")
    stale = service.assign_role(
        user.id, viewer.id, expires_at=datetime.utcnow() - timedelta(days=1)
    )

    renewed = service.assign_role(user.id, viewer.id)

    assert renewed.id != stale.id
    service.db.refresh(stale)
    assert stale.is_active is False
    assert service.has_permission(user.id, "equipment", "read") is True


def test_primary_role_is_exclusive(seeded, service, make_user):
    user = make_user()
    r1 = service.get_role_by_name("VIEWER")
    r2 = service.get_role_by_name("SUPPORT")
    service.assign_role(user.id, r1.id, is_primary=True)
    service.assign_role(user.id, r2.id, is_primary=True)

    primaries = (
        service.db.query(UserRole)
        .filter(UserRole.user_id == user.id, UserRole.is_primary.is_(True))
        .all()
    )
    assert [row.role_id for row in primaries] == [r2.id]


def test_set_primary_role(seeded, service, make_user):
    user = make_user()
    r1 = service.get_role_by_name("VIEWER")
    r2 = service.get_role_by_name("SUPPORT")
    service.assign_role(user.id, r1.id, is_primary=True)
    service.assign_role(user.id, r2.id)

    service.set_primary_role(user.id, r2.id)

    roles = service.get_user_roles(user.id)
    assert roles[0].role_id == r2.id
    assert [r.is_primary for r in roles] == [True, False]


def test_remove_role(seeded, service, viewer_user):
    viewer = service.get_role_by_name("VIEWER")
    assert service.has_permission(viewer_user.id, "equipment", "read") is True

    service.remove_role(viewer_user.id, viewer.id)

    assert service.get_user_roles(viewer_user.id) == []
    assert service.has_permission(viewer_user.id, "equipment", "read") is False
    with pytest.raises(AssignmentNotFoundError):
        service.remove_role(viewer_user.id, viewer.id)


# ----------------------------------------------------------------------
# Overrides
# ----------------------------------------------------------------------


def test_override_replaces_previous(seeded, service, viewer_user):
    service.grant_permission(viewer_user.id, "equipment:delete")
    service.deny_permission(viewer_user.id, "equipment:delete", granted_by="admin")

    overrides = (
        service.db.query(UserPermission)
        .filter_by(user_id=viewer_user.id, is_active=True)
        .all()
    )
    assert len(overrides) == 1
    assert overrides[0].is_denied is True
    assert service.has_permission(viewer_user.id, "equipment", "delete") is False


def test_override_unknown_permission(seeded, service, viewer_user):
    with pytest.raises(PermissionNotFoundError):
        service.grant_permission(viewer_user.id, "spaceships:launch")


def test_revoke_override(seeded, service, viewer_user):
    service.deny_permission(viewer_user.id, "equipment:read")
    assert service.has_permission(viewer_user.id, "equipment", "read") is False

    service.revoke_override(viewer_user.id, "equipment:read")

    assert service.has_permission(viewer_user.id, "equipment", "read") is True
    with pytest.raises(OverrideNotFoundError):
        service.revoke_override(viewer_user.id, "equipment:read")


# ----------------------------------------------------------------------
# Permission catalog
# ----------------------------------------------------------------------


def test_create_permission(seeded, service):
    permission = service.create_permission(
        PermissionCreateSchema(
            name="licenses.read",
            display_name="View licenses",
            category="assets",
            resource="Licenses",
            action="READ",
            risk_level=RiskLevel.HIGH,
        )
    )

    assert permission.key == "licenses:read"
    assert permission.scope == "ALL"
    assert permission.audit_required is True
    assert permission.is_system is False


def test_create_duplicate_permission(seeded, service):
    with pytest.raises(DuplicatePermissionError):
        service.create_permission(
            PermissionCreateSchema(
                name="equipment.read.again",
                display_name="View equipment",
                category="assets",
                resource="equipment",
                action="read",
            )
        )


def test_own_scope_is_a_separate_permission(seeded, service):
    keys = [
        (p.resource, p.action, p.scope)
        for p in service.list_permissions()
        if p.resource == "tickets" and p.action == "read"
    ]
    assert sorted(keys) == [("tickets", "read", "ALL"), ("tickets", "read", "OWN")]


def test_system_permission_cannot_be_toggled(seeded, service):
    permission = service.list_permissions()[0]
    with pytest.raises(SystemPermissionImmutableError):
        service.set_permission_active(permission.id, False)


def test_deactivated_permission_stops_granting(seeded, service, make_user, cache):
    custom = service.create_permission(
        PermissionCreateSchema(
            name="licenses.read",
            display_name="View licenses",
            category="assets",
            resource="licenses",
            action="read",
        )
    )
    user = make_user()
    service.grant_permission(user.id, "licenses:read")
    assert service.has_permission(user.id, "licenses", "read") is True

    service.set_permission_active(custom.id, False)

    assert service.has_permission(user.id, "licenses", "read") is False
    assert custom not in service.list_permissions()
    assert custom in service.list_permissions(include_inactive=True)


def test_permissions_by_category(seeded, service):
    grouped = service.get_permissions_by_category()
    assert {"system", "users", "assets", "support", "hr", "finance"} <= set(grouped)
    assert all(p.category == "assets" for p in grouped["assets"])


# ----------------------------------------------------------------------
# Cache coherence and end-to-end scenarios
# ----------------------------------------------------------------------


def test_update_role_invalidates_members(seeded, service, make_user, make_role, cache):
    user = make_user()
    role = make_role("DESK", ["tickets:read"], level=45)
    service.assign_role(user.id, role.id)

    # Populate the cache first
    assert service.has_permission(user.id, "tickets", "close") is False
    assert permissions_key(user.id) in cache

    service.update_role(role.id, RoleUpdateSchema(permissions=["tickets:close"]))

    assert permissions_key(user.id) not in cache
    assert service.has_permission(user.id, "tickets", "close") is True
    assert service.has_permission(user.id, "tickets", "read") is False


def test_admin_viewer_scenario(db_session, service, make_user):
    service.create_permission(
        PermissionCreateSchema(
            name="users.edit",
            display_name="Edit users",
            category="users",
            resource="users",
            action="edit",
        )
    )
    admin = service.create_role(
        RoleCreateSchema(
            name="Admin", display_name="Admin", permissions=["users:edit"], level=90
        )
    )
    viewer = service.create_role(
        RoleCreateSchema(name="Viewer", display_name="Viewer", level=10)
    )
    user = make_user("u")
    service.assign_role(user.id, viewer.id)

    assert service.has_permission(user.id, "users", "edit") is False

    service.assign_role(user.id, admin.id)
    assert service.has_permission(user.id, "users", "edit") is True

    service.deny_permission(user.id, "users:edit")
    assert service.has_permission(user.id, "users", "edit") is False


def test_can_manage_role_scenario(seeded, service, make_user, make_role):
    user = make_user()
    service.assign_role(user.id, make_role("LEVEL_50", [], level=50).id)

    assert service.can_manage_role(user.id, make_role("LEVEL_90", [], 90).id) is False
    assert service.can_manage_role(user.id, make_role("LEVEL_30", [], 30).id) is True
