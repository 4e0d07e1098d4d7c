"""
Scoped authorization session.

Replaces a global "current user / current role" singleton. An ``AuthSession``
holds one identity binding at a time together with everything derived from
it: cached decisions and the filtered navigation. Rebinding, logout, token
expiry and assign/unassign calls made through the session drop what may have
become stale.
"""

from __future__ import annotations

import logging

from brokerdesk.authz.batch import BatchEvaluator
from brokerdesk.authz.cache import DecisionCache
from brokerdesk.authz.evaluator import DEFAULT_TIMEOUT_SECONDS, PermissionEvaluator, identity_usable
from brokerdesk.authz.navigation import NavigationConfig, NavigationFilter, NavigationTree
from brokerdesk.authz.store import AuthorizationStore
from brokerdesk.identity import IdentityConfig, IdentityContext, decode_identity

logger = logging.getLogger(__name__)


class AuthSession:
    def __init__(
        self,
        store: AuthorizationStore,
        navigation: NavigationConfig | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        identity_config: IdentityConfig | None = None,
    ) -> None:
        self._cache = DecisionCache()
        self.evaluator = PermissionEvaluator(store, timeout_seconds=timeout_seconds, cache=self._cache)
        self.batch = BatchEvaluator(self.evaluator)
        self._navigation_config = navigation or NavigationConfig()
        self._navigation_filter = NavigationFilter(self.evaluator, self.batch)
        self._identity_config = identity_config
        self._identity: IdentityContext | None = None
        self._navigation: NavigationTree | None = None

    # ---- Identity binding -----------------------------------------------------------

    @property
    def identity(self) -> IdentityContext | None:
        """The bound identity, or None if unbound or expired."""
        if self._identity is not None and self._identity.is_expired():
            logger.info("Session identity expired user=%s", self._identity.user_id)
            self.logout()
        return self._identity

    def bind(self, token: str | None) -> IdentityContext | None:
        """Resolve ``token`` and bind the resulting identity (None if unusable)."""
        config = self._identity_config or IdentityConfig.from_environ()
        return self.bind_identity(decode_identity(token, config))

    def bind_identity(self, identity: IdentityContext | None) -> IdentityContext | None:
        self._reset()
        self._identity = identity if identity_usable(identity) else None
        if self._identity is not None:
            logger.debug("Session bound user=%s role=%s", self._identity.user_id, self._identity.role.value)
        return self._identity

    def logout(self) -> None:
        self._reset()
        self._identity = None

    def _reset(self) -> None:
        self._cache.clear()
        self._navigation = None

    def invalidate_role(self, role_id: int | str) -> None:
        """
        Drop cached decisions for ``role_id``.

        When the bound identity carries no role id the whole cache goes, since
        the affected role may be ours.
        """
        key = str(role_id)
        identity = self._identity
        if identity is None:
            return
        if identity.role_id is None or identity.role_id == key:
            self._reset()
        else:
            self._cache.invalidate_role(key)

    # ---- Decisions ------------------------------------------------------------------

    async def has_view_access(self, view_name: str) -> bool:
        return await self.evaluator.has_view_access(self.identity, view_name)

    async def has_permission(self, view_name: str, permission_name: str) -> bool:
        return await self.evaluator.has_permission(self.identity, view_name, permission_name)

    async def check_route_access(self, request_path: str) -> bool:
        return await self.evaluator.check_route_access(self.identity, request_path)

    async def evaluate_many(self, queries: list[tuple[str, str]]) -> list[bool]:
        return await self.batch.evaluate_many(self.identity, queries)

    async def navigation(self) -> NavigationTree:
        """
        Filtered navigation for the bound identity.

        Computed once per binding and reused until the binding or the role's
        grants change.
        """
        identity = self.identity
        if identity is None:
            return ()
        if self._navigation is None:
            tree = self._navigation_config.tree_for(identity.role)
            filtered = await self._navigation_filter.filter_tree(identity, tree)
            if self._identity is identity:
                self._navigation = filtered
            return filtered
        return self._navigation

    # ---- Administration -------------------------------------------------------------

    def assign_view(self, role_id: int, view_id: int) -> str:
        """Assign a view to a role; raises AssignmentError on failure."""
        message = self.evaluator.store.assign_view(role_id, view_id)
        self.invalidate_role(role_id)
        return message

    def unassign_view(self, role_id: int, view_id: int) -> str:
        """Unassign a view from a role; raises AssignmentError on failure."""
        message = self.evaluator.store.unassign_view(role_id, view_id)
        self.invalidate_role(role_id)
        return message
