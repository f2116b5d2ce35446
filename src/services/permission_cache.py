# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Short-lived cache for per-user roles, effective permissions and the role hierarchy."""

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

logger = logging.getLogger(__name__)

# Default time to live for cached entries (in seconds)
DEFAULT_TTL_SECONDS = 300

ROLE_HIERARCHY_KEY = "role_hierarchy"


def user_roles_key(user_id: int) -> str:
    return f"user_roles_{user_id}"


def permissions_key(user_id: int) -> str:
    return f"permissions_{user_id}"


class PermissionCache:
    """In-process TTL cache shared by all request handlers.

    Entries are ``(value, expires_at)`` tuples stored in a plain dict. Every
    public operation is a single dict call (``get``, item assignment, ``pop``,
    ``clear``), each of which is atomic, so concurrent readers never block on
    a lock. Two concurrent misses for the same key may both recompute; the
    last write wins.

    Values must be treated as immutable snapshots by callers.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry, counted from the write.
            clock: Monotonic time source, replaceable in tests.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss or expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() > expires_at:
            # Only drop the entry we looked at; a fresh write may have replaced it.
            if self._entries.get(key) is entry:
                self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        """Store a value for the configured TTL."""
        self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def invalidate_user(self, user_id: int) -> None:
        """Drop the cached roles and permissions of a single user."""
        self._entries.pop(user_roles_key(user_id), None)
        self._entries.pop(permissions_key(user_id), None)
        logger.debug(f"Invalidated permission cache for user {user_id}")

    def invalidate_users(self, user_ids: Iterable[int]) -> None:
        for user_id in user_ids:
            self.invalidate_user(user_id)

    def invalidate_hierarchy(self) -> None:
        self._entries.pop(ROLE_HIERARCHY_KEY, None)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        logger.debug("Cleared permission cache")

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
