# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for rbac_seed_service."""

import logging

from src.models import Permission, Role, RolePermission
from src.rbac.permissions import CORE_PERMISSIONS
from src.rbac.roles import DEFAULT_ROLES
from src.services import rbac_seed_service
from src.services.rbac_seed_service import seed_rbac_data


def test_seed_creates_catalog_and_roles(db_session):
    seed_rbac_data(db_session)

    assert db_session.query(Permission).count() == len(CORE_PERMISSIONS)
    assert db_session.query(Role).count() == len(DEFAULT_ROLES)
    assert all(role.is_system for role in db_session.query(Role).all())
    assert all(p.is_system for p in db_session.query(Permission).all())


def test_seed_is_idempotent(db_session):
    seed_rbac_data(db_session)
    links = db_session.query(RolePermission).count()

    seed_rbac_data(db_session)

    assert db_session.query(Permission).count() == len(CORE_PERMISSIONS)
    assert db_session.query(Role).count() == len(DEFAULT_ROLES)
    assert db_session.query(RolePermission).count() == links


def test_super_admin_holds_wildcard(db_session):
    seed_rbac_data(db_session)

    super_admin = db_session.query(Role).filter_by(name="SUPER_ADMIN").one()
    assert [rp.permission.key for rp in super_admin.role_permissions] == ["*:*"]


def test_admin_lacks_restore_and_grant(db_session):
    seed_rbac_data(db_session)

    admin = db_session.query(Role).filter_by(name="ADMIN").one()
    keys = {rp.permission.key for rp in admin.role_permissions}
    assert "users:delete" in keys
    assert "backups:restore" not in keys
    assert "permissions:grant" not in keys
    assert "*:*" not in keys


def test_high_risk_permissions_require_audit(db_session):
    seed_rbac_data(db_session)

    restore = (
        db_session.query(Permission)
        .filter_by(resource="backups", action="restore")
        .one()
    )
    assert restore.audit_required is True
    assert restore.requires_mfa is True


def test_unknown_role_permission_is_logged(db_session, monkeypatch, caplog):
    monkeypatch.setattr(
        rbac_seed_service,
        "DEFAULT_ROLES",
        [
            {
                "name": "GHOST",
                "display_name": "Ghost",
                "description": "Role pointing at a missing permission.",
                "color": "#000000",
                "icon": "ghost",
                "level": 10,
                "priority": 10,
                "permissions": ["ghost:read", "equipment:read"],
            }
        ],
    )

    with caplog.at_level(logging.WARNING, logger=rbac_seed_service.__name__):
        seed_rbac_data(db_session)

    assert "GHOST references unknown permission ghost:read" in caplog.text
    role = db_session.query(Role).filter(Role.name == "GHOST").one()
    assert [rp.permission.key for rp in role.role_permissions] == ["equipment:read"]
