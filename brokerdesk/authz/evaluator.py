"""
Permission Evaluator.

Answers three questions for an identity, each with a definite bool:

    has_view_access(identity, view)
    has_permission(identity, view, permission)
    check_route_access(identity, path)

Every operation fails closed. No identity, an expired identity, a store
error, a timeout, or a malformed answer all resolve to ``False``; nothing on
the read path raises past this class. Store calls are blocking, so they run in
a worker thread and the coroutine suspends there. Cancelling the awaiting task
abandons the check.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
from typing import TYPE_CHECKING, Any

from brokerdesk.authz.cache import CacheKey, DecisionCache
from brokerdesk.authz.errors import AuthzStoreError
from brokerdesk.authz.store import AuthorizationStore

if TYPE_CHECKING:
    from brokerdesk.identity.context import IdentityContext

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

CREATE = "create"
READ = "read"
UPDATE = "update"
DELETE = "delete"


def identity_usable(identity: IdentityContext | None) -> bool:
    """True if ``identity`` can be evaluated at all."""
    return identity is not None and bool(identity.user_id) and not identity.is_expired()


class PermissionEvaluator:
    """
    Fail-closed decision engine over an ``AuthorizationStore``.

    ``cache`` is optional and owned by the caller's session; without one every
    call goes to the store.
    """

    def __init__(
        self,
        store: AuthorizationStore,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        cache: DecisionCache | None = None,
    ) -> None:
        self._store = store
        self._timeout = timeout_seconds
        self._cache = cache

    @property
    def store(self) -> AuthorizationStore:
        return self._store

    @property
    def cache(self) -> DecisionCache | None:
        return self._cache

    # ---- Store access ---------------------------------------------------------------

    async def lookup(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any | None:
        """
        Run a blocking store call off the event loop with a timeout.

        Returns the call's result, or None if it failed or timed out. Task
        cancellation is not caught.
        """
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Authz: %s timed out after %.1fs; denying", operation, self._timeout)
        except AuthzStoreError as exc:
            logger.warning("Authz: %s failed (%s); denying", operation, exc)
        except Exception as exc:
            logger.warning("Authz: %s raised %s; denying", operation, type(exc).__name__, exc_info=True)
        return None

    async def _decide(
        self,
        identity: IdentityContext | None,
        key: CacheKey,
        fn: Callable[..., bool],
        *args: Any,
    ) -> bool:
        if not identity_usable(identity):
            logger.debug("Authz: no usable identity; denying %s", key[0])
            return False

        if self._cache is not None:
            cached = self._cache.get(identity.role_key, key)
            if cached is not None:
                return cached

        result = await self.lookup(str(key[0]), fn, *args)
        if result is None:
            return False

        granted = result is True
        if self._cache is not None:
            self._cache.put(identity.role_key, key, granted)
        if not granted:
            logger.debug("Authz: denied user=%s check=%s", identity.user_id, key)
        return granted

    # ---- Decisions ------------------------------------------------------------------

    async def has_view_access(self, identity: IdentityContext | None, view_name: str) -> bool:
        user_id = identity.user_id if identity else ""
        return await self._decide(identity, ("view", view_name), self._store.verify_view, user_id, view_name)

    async def has_permission(self, identity: IdentityContext | None, view_name: str, permission_name: str) -> bool:
        user_id = identity.user_id if identity else ""
        return await self._decide(
            identity,
            ("permission", view_name, permission_name),
            self._store.verify_permission,
            user_id,
            view_name,
            permission_name,
        )

    async def check_route_access(self, identity: IdentityContext | None, request_path: str) -> bool:
        user_id = identity.user_id if identity else ""
        return await self._decide(identity, ("route", request_path), self._store.verify_route, user_id, request_path)

    # CRUD shortcuts

    async def can_create(self, identity: IdentityContext | None, view_name: str) -> bool:
        return await self.has_permission(identity, view_name, CREATE)

    async def can_read(self, identity: IdentityContext | None, view_name: str) -> bool:
        return await self.has_permission(identity, view_name, READ)

    async def can_update(self, identity: IdentityContext | None, view_name: str) -> bool:
        return await self.has_permission(identity, view_name, UPDATE)

    async def can_delete(self, identity: IdentityContext | None, view_name: str) -> bool:
        return await self.has_permission(identity, view_name, DELETE)
