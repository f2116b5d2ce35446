# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Per-request authorization.

One pass per protected request:

1. extract the bearer token (cookie first, then ``Authorization`` header),
2. verify it with the injected verifier,
3. build the caller's authorization context from cached roles and
   effective permissions,
4. evaluate the route's requirement against that context.

Every failure is raised as :class:`AuthorizationError` carrying a string
code, so the gate stays independent of the web framework.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from src.rbac.patterns import WILDCARD, PermissionPattern
from src.rbac.roles import SUPERUSER_ROLE
from src.services.permission_cache import PermissionCache
from src.services.permission_resolver import PermissionResolver

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "auth_token"


class AuthErrorCode(str, Enum):
    """Error codes surfaced to the routing layer."""

    TOKEN_REQUIRED = "TOKEN_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    MALFORMED_TOKEN = "MALFORMED_TOKEN"
    TOKEN_NOT_YET_VALID = "TOKEN_NOT_YET_VALID"
    INVALID_USER_ID = "INVALID_USER_ID"
    INVALID_USERNAME = "INVALID_USERNAME"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    ROLE_REQUIRED = "ROLE_REQUIRED"
    AUTHORIZATION_LOAD_FAILED = "AUTHORIZATION_LOAD_FAILED"


class AuthorizationError(Exception):
    """Rejection of a request by the gate."""

    def __init__(
        self,
        code: AuthErrorCode,
        message: str,
        status_code: int = 401,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code.value, **self.extra}


def normalize_role(role: str | None) -> str | None:
    if not role or not isinstance(role, str):
        return None
    trimmed = role.strip()
    return trimmed.upper() if trimmed else None


def normalize_permission(permission: str) -> str:
    return permission.strip().lower()


@dataclass(frozen=True)
class HighestRole:
    id: int
    name: str
    level: int


@dataclass
class AuthorizationContext:
    """What the gate knows about the caller after a successful check."""

    user_id: int
    username: str
    roles: list[str]
    permissions: list[str]
    highest_role: HighestRole | None
    role: str | None
    token: str = field(default="", repr=False)

    @property
    def is_superuser(self) -> bool:
        """True when the caller holds the superuser role.

        The superuser passes every permission check whatever the stored
        grants say. This is the only place the bypass is decided.
        """
        return SUPERUSER_ROLE in self.roles

    def has_permission(self, permission: str) -> bool:
        if not permission or not isinstance(permission, str):
            return False
        if self.is_superuser:
            return True

        normalized = normalize_permission(permission)
        resource, _, action = normalized.partition(":")
        granted = set(self.permissions)
        return (
            normalized in granted
            or f"{resource}:{WILDCARD}" in granted
            or f"{WILDCARD}:{action}" in granted
            or f"{WILDCARD}:{WILDCARD}" in granted
        )

    def has_role(self, role: str) -> bool:
        normalized = normalize_role(role)
        return normalized is not None and normalized in self.roles

    def to_dict(self) -> dict[str, Any]:
        """Outbound representation handed to route handlers and clients."""
        return {
            "userId": self.user_id,
            "username": self.username,
            "roles": list(self.roles),
            "permissions": list(self.permissions),
            "highestRole": (
                {
                    "id": self.highest_role.id,
                    "name": self.highest_role.name,
                    "level": self.highest_role.level,
                }
                if self.highest_role
                else None
            ),
            "role": self.role,
        }


class RequirementKind(str, Enum):
    PERMISSION = "permission"
    ALL_PERMISSIONS = "all_permissions"
    ANY_PERMISSION = "any_permission"
    ROLE = "role"
    ANY_ROLE = "any_role"


@dataclass(frozen=True)
class Requirement:
    """What a route demands of its caller.

    Build instances through the class methods; permission strings are
    validated as ``resource:action`` patterns and role names are upper-cased.
    """

    kind: RequirementKind
    values: tuple[str, ...]

    @classmethod
    def permission(cls, resource: str, action: str) -> "Requirement":
        pattern = PermissionPattern.parse(f"{resource}:{action}")
        return cls(RequirementKind.PERMISSION, (pattern.key,))

    @classmethod
    def all_permissions(cls, permissions: list[str]) -> "Requirement":
        return cls(RequirementKind.ALL_PERMISSIONS, cls._parse_permissions(permissions))

    @classmethod
    def any_permission(cls, permissions: list[str]) -> "Requirement":
        return cls(RequirementKind.ANY_PERMISSION, cls._parse_permissions(permissions))

    @classmethod
    def role(cls, name: str) -> "Requirement":
        return cls(RequirementKind.ROLE, cls._parse_roles([name]))

    @classmethod
    def any_role(cls, names: list[str]) -> "Requirement":
        return cls(RequirementKind.ANY_ROLE, cls._parse_roles(names))

    @staticmethod
    def _parse_permissions(permissions: list[str]) -> tuple[str, ...]:
        return tuple(PermissionPattern.parse(p).key for p in permissions if p)

    @staticmethod
    def _parse_roles(names: list[str]) -> tuple[str, ...]:
        roles = tuple(filter(None, (normalize_role(name) for name in names)))
        if not roles:
            raise ValueError("At least one valid role name is required")
        return roles


class AuthorizationGate:
    """Authenticates a caller and checks a requirement."""

    def __init__(
        self,
        db: Session,
        cache: PermissionCache,
        verifier: Callable[[str], Any],
        cookie_name: str = DEFAULT_COOKIE_NAME,
    ) -> None:
        """Initialize the gate.

        Args:
            db: Database session for loading roles on a cache miss.
            cache: Shared permission cache.
            verifier: Callable returning an object with ``payload``,
                ``error`` and ``error_code`` attributes.
            cookie_name: Name of the cookie carrying the token.
        """
        self.resolver = PermissionResolver(db, cache)
        self.verifier = verifier
        self.cookie_name = cookie_name

    def extract_token(
        self, cookies: Mapping[str, str], headers: Mapping[str, str]
    ) -> str | None:
        """Return the bearer token; the cookie wins over the header."""
        cookie_token = cookies.get(self.cookie_name)
        if isinstance(cookie_token, str) and cookie_token.strip():
            return cookie_token.strip()

        auth_header = headers.get("authorization") or headers.get("Authorization")
        if isinstance(auth_header, str):
            scheme, _, value = auth_header.strip().partition(" ")
            if scheme.lower() == "bearer" and value.strip():
                return value.strip()

        return None

    def authenticate(self, token: str | None) -> dict[str, Any]:
        """Verify the token and validate the claims the gate relies on."""
        if not token:
            raise AuthorizationError(AuthErrorCode.TOKEN_REQUIRED, "Token not provided")

        result = self.verifier(token)
        if result.payload is None or result.error:
            # Verifiers may hand back a plain string code
            try:
                code = AuthErrorCode(result.error_code)
            except ValueError:
                code = AuthErrorCode.INVALID_TOKEN
            raise AuthorizationError(code, result.error or "Invalid token")

        payload = result.payload
        user_id = payload.get("userId")
        if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
            raise AuthorizationError(AuthErrorCode.INVALID_USER_ID, "Invalid user id")

        username = payload.get("username")
        if not isinstance(username, str) or not username.strip():
            raise AuthorizationError(AuthErrorCode.INVALID_USERNAME, "Invalid username")

        return payload

    def build_context(
        self, payload: dict[str, Any], token: str = "", path: str | None = None
    ) -> AuthorizationContext:
        """Load roles and effective permissions for an authenticated caller."""
        user_id = payload["userId"]
        try:
            assigned_roles = self.resolver.get_user_roles(user_id)
            effective = self.resolver.calculate_effective_permissions(user_id)
        except Exception as e:
            logger.exception(
                f"Failed to load authorization context for user {user_id} on {path}"
            )
            raise AuthorizationError(
                AuthErrorCode.AUTHORIZATION_LOAD_FAILED,
                "Could not load authorization information",
                status_code=500,
            ) from e

        roles: list[str] = []
        highest: HighestRole | None = None
        for assigned in assigned_roles:
            name = normalize_role(assigned.name)
            if not name:
                continue
            if name not in roles:
                roles.append(name)
            if highest is None or assigned.level > highest.level:
                highest = HighestRole(id=assigned.role_id, name=name, level=assigned.level)

        # Legacy single role carried by the token
        fallback_role = normalize_role(payload.get("role"))
        if fallback_role:
            if fallback_role not in roles:
                roles.append(fallback_role)
            if highest is None:
                highest = HighestRole(id=0, name=fallback_role, level=0)

        permissions: list[str] = []
        for entry in effective:
            if not entry.granted:
                continue
            resource = (entry.resource or "").strip()
            action = (entry.action or "").strip()
            if not resource or not action:
                continue
            key = normalize_permission(f"{resource}:{action}")
            if key not in permissions:
                permissions.append(key)

        return AuthorizationContext(
            user_id=user_id,
            username=payload["username"],
            roles=roles,
            permissions=permissions,
            highest_role=highest,
            role=highest.name if highest else fallback_role,
            token=token,
        )

    def evaluate(
        self,
        context: AuthorizationContext,
        requirement: Requirement | None,
        path: str | None = None,
    ) -> None:
        """Raise if the context does not satisfy the requirement."""
        if requirement is None:
            return

        required = list(requirement.values)
        kind = requirement.kind

        if kind in (RequirementKind.PERMISSION, RequirementKind.ALL_PERMISSIONS):
            missing = [p for p in required if not context.has_permission(p)]
            if missing:
                self._deny_permission(context, required, missing, path)

        elif kind is RequirementKind.ANY_PERMISSION:
            if required and not any(context.has_permission(p) for p in required):
                self._deny_permission(context, required, required, path)

        elif kind in (RequirementKind.ROLE, RequirementKind.ANY_ROLE):
            if not any(context.has_role(role) for role in required):
                logger.warning(
                    f"User {context.user_id} lacks role {required} on {path}"
                )
                raise AuthorizationError(
                    AuthErrorCode.ROLE_REQUIRED,
                    f"Role required: {', '.join(required)}",
                    status_code=403,
                    extra={"required": required, "userRoles": list(context.roles)},
                )

    def authorize(
        self,
        cookies: Mapping[str, str],
        headers: Mapping[str, str],
        requirement: Requirement | None = None,
        path: str | None = None,
    ) -> AuthorizationContext:
        """Run the whole decision procedure for one request."""
        token = self.extract_token(cookies, headers)
        payload = self.authenticate(token)
        context = self.build_context(payload, token or "", path)
        self.evaluate(context, requirement, path)
        return context

    @staticmethod
    def _deny_permission(
        context: AuthorizationContext,
        required: list[str],
        missing: list[str],
        path: str | None,
    ) -> None:
        logger.warning(
            f"User {context.user_id} denied on {path}: missing {missing}"
        )
        raise AuthorizationError(
            AuthErrorCode.PERMISSION_DENIED,
            f"Missing permissions: {', '.join(missing)}",
            status_code=403,
            extra={"required": required, "missing": missing},
        )
