"""
Per-session decision cache.

Lives only as long as one identity binding (see ``AuthSession``). Entries are
grouped by role key so an assign/unassign for a role can drop exactly the
decisions that may have changed.
"""

from __future__ import annotations

from collections.abc import Hashable
import logging

logger = logging.getLogger(__name__)

CacheKey = tuple[Hashable, ...]


class DecisionCache:
    def __init__(self) -> None:
        self._entries: dict[str, dict[CacheKey, bool]] = {}

    def get(self, role_key: str, key: CacheKey) -> bool | None:
        return self._entries.get(role_key, {}).get(key)

    def put(self, role_key: str, key: CacheKey, granted: bool) -> None:
        self._entries.setdefault(role_key, {})[key] = granted

    def invalidate_role(self, role_key: str) -> None:
        dropped = self._entries.pop(role_key, None)
        if dropped:
            logger.debug("Decision cache invalidated role=%s entries=%d", role_key, len(dropped))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._entries.values())
