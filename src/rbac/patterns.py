# src/rbac/patterns.py
"""Parsed ``resource:action`` permission patterns."""

import re
from dataclasses import dataclass

WILDCARD = "*"

_SEGMENT = re.compile(r"^(\*|[a-z0-9][a-z0-9_.\-]*)$")


class InvalidPermissionPatternError(ValueError):
    """Raised when a permission pattern cannot be parsed."""

    def __init__(self, pattern: object) -> None:
        self.pattern = pattern
        super().__init__(f"Invalid permission pattern: {pattern!r}")


@dataclass(frozen=True)
class PermissionPattern:
    """A validated (resource, action, scope) reference into the catalog.

    Accepts ``resource:action`` or ``resource:action:scope``. Resource and
    action are normalised to lower case, scope to upper case.
    """

    resource: str
    action: str
    scope: str = "ALL"

    @classmethod
    def parse(cls, pattern: str) -> "PermissionPattern":
        if not isinstance(pattern, str):
            raise InvalidPermissionPatternError(pattern)

        parts = [part.strip() for part in pattern.split(":")]
        if len(parts) not in (2, 3):
            raise InvalidPermissionPatternError(pattern)

        resource, action = parts[0].lower(), parts[1].lower()
        if not _SEGMENT.match(resource) or not _SEGMENT.match(action):
            raise InvalidPermissionPatternError(pattern)

        scope = "ALL"
        if len(parts) == 3:
            scope = parts[2].upper()
            if not scope.isalpha():
                raise InvalidPermissionPatternError(pattern)

        return cls(resource=resource, action=action, scope=scope)

    @classmethod
    def parse_many(cls, patterns: list[str]) -> list["PermissionPattern"]:
        """Parse a list of patterns, dropping duplicates but keeping order."""
        parsed: list[PermissionPattern] = []
        for raw in patterns:
            pattern = cls.parse(raw)
            if pattern not in parsed:
                parsed.append(pattern)
        return parsed

    @property
    def key(self) -> str:
        return f"{self.resource}:{self.action}"

    def matches(self, resource: str, action: str) -> bool:
        """Return True if this pattern covers the given resource and action."""
        return self.resource in (WILDCARD, resource) and self.action in (
            WILDCARD,
            action,
        )

    def __str__(self) -> str:
        return self.key if self.scope == "ALL" else f"{self.key}:{self.scope}"
