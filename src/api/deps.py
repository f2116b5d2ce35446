# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""API dependencies for dependency injection."""

from collections.abc import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from src.config import settings
from src.database import get_db
from src.security import verify_token
from src.services.authorization_gate import (
    AuthorizationContext,
    AuthorizationGate,
    Requirement,
)
from src.services.permission_cache import PermissionCache
from src.services.rbac_service import RoleManagementService

__all__ = [
    "get_auth_context",
    "get_authorization_gate",
    "get_db",
    "get_permission_cache",
    "get_role_service",
    "require_all_permissions",
    "require_any_permission",
    "require_any_role",
    "require_permission",
    "require_role",
]


def get_permission_cache(request: Request) -> PermissionCache:
    """Get the process-wide permission cache created at startup."""
    return request.app.state.permission_cache


def get_role_service(
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
) -> RoleManagementService:
    """Get a role management service bound to the request's session."""
    return RoleManagementService(db, cache)


def get_authorization_gate(
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
) -> AuthorizationGate:
    """Get an authorization gate bound to the request's session."""
    return AuthorizationGate(
        db, cache, verify_token, cookie_name=settings.auth_cookie_name
    )


def _authorize(
    requirement: Requirement | None,
) -> Callable[..., AuthorizationContext]:
    def dependency(
        request: Request,
        gate: AuthorizationGate = Depends(get_authorization_gate),
    ) -> AuthorizationContext:
        return gate.authorize(
            request.cookies,
            request.headers,
            requirement,
            path=request.url.path,
        )

    return dependency


def get_auth_context(
    request: Request,
    gate: AuthorizationGate = Depends(get_authorization_gate),
) -> AuthorizationContext:
    """Authenticate the caller without any further requirement."""
    return gate.authorize(request.cookies, request.headers, path=request.url.path)


def require_permission(
    resource: str, action: str
) -> Callable[..., AuthorizationContext]:
    """Dependency for a single ``resource:action`` permission."""
    return _authorize(Requirement.permission(resource, action))


def require_all_permissions(
    permissions: list[str],
) -> Callable[..., AuthorizationContext]:
    """Dependency requiring every listed permission."""
    return _authorize(Requirement.all_permissions(permissions))


def require_any_permission(
    permissions: list[str],
) -> Callable[..., AuthorizationContext]:
    """Dependency requiring at least one of the listed permissions."""
    return _authorize(Requirement.any_permission(permissions))


def require_role(name: str) -> Callable[..., AuthorizationContext]:
    """Dependency requiring a role by name."""
    return _authorize(Requirement.role(name))


def require_any_role(names: list[str]) -> Callable[..., AuthorizationContext]:
    """Dependency requiring at least one of the listed roles."""
    return _authorize(Requirement.any_role(names))
