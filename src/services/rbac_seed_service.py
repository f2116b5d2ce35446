# src/services/rbac_seed_service.py
import logging

from sqlalchemy.orm import Session

from src.models import Permission, RiskLevel, Role, RolePermission
from src.rbac.patterns import PermissionPattern
from src.rbac.permissions import CORE_PERMISSIONS
from src.rbac.roles import DEFAULT_ROLES

logger = logging.getLogger(__name__)


def seed_rbac_data(db: Session) -> None:
    """Seeds the database with the core permission catalog and default roles.

    This function is idempotent: existing permissions and roles are left as
    they are, so administrative changes survive a restart.
    @param db: SQLAlchemy Session object
    """
    # Seed permissions
    created_permissions = 0
    for perm_data in CORE_PERMISSIONS:
        scope = perm_data.get("scope", "ALL")
        permission = (
            db.query(Permission)
            .filter(
                Permission.resource == perm_data["resource"],
                Permission.action == perm_data["action"],
                Permission.scope == scope,
            )
            .first()
        )
        if not permission:
            risk_level = RiskLevel(perm_data["risk_level"])
            db.add(
                Permission(
                    name=perm_data["name"],
                    display_name=perm_data["display_name"],
                    category=perm_data["category"],
                    resource=perm_data["resource"],
                    action=perm_data["action"],
                    scope=scope,
                    risk_level=risk_level,
                    requires_mfa=perm_data.get("requires_mfa", False),
                    audit_required=risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL),
                    is_system=True,
                    is_active=True,
                )
            )
            created_permissions += 1
    db.flush()

    # Seed roles and role-permissions
    created_roles = 0
    for role_data in DEFAULT_ROLES:
        role = (
            db.query(Role)
            .filter(Role.name == role_data["name"], Role.deleted_at.is_(None))
            .first()
        )
        if role:
            continue

        role = Role(
            name=role_data["name"],
            display_name=role_data["display_name"],
            description=role_data["description"],
            color=role_data["color"],
            icon=role_data["icon"],
            level=role_data["level"],
            priority=role_data["priority"],
            is_system=True,
            is_active=True,
        )
        db.add(role)
        db.flush()  # Flush to get the role ID
        created_roles += 1

        for raw in role_data["permissions"]:
            pattern = PermissionPattern.parse(raw)
            permission = (
                db.query(Permission)
                .filter(
                    Permission.resource == pattern.resource,
                    Permission.action == pattern.action,
                    Permission.scope == pattern.scope,
                )
                .first()
            )
            if permission is None:
                logger.warning(
                    f"Default role {role.name} references unknown permission {raw}"
                )
                continue
            if not any(
                rp.permission_id == permission.id for rp in role.role_permissions
            ):
                role.role_permissions.append(
                    RolePermission(permission_id=permission.id, granted_by="system")
                )
    db.commit()

    if created_permissions or created_roles:
        logger.info(
            f"Seeded {created_permissions} permissions and {created_roles} roles"
        )
