"""
Navigation Filter.

The menu is a static, role-agnostic tree loaded from YAML::

    navigation:
      admin:
        - title: Ventas
          items:
            - title: Leads
              url: /admin/leads
              required_view: leads
            - title: Eliminar leads
              url: /admin/leads/eliminar
              required_view: leads
              required_permission: delete

A node with ``items`` is a group; anything else is a leaf. Filtering keeps a
leaf iff its view (or view + permission) check passes, and keeps a group iff
at least one child survives and its own requirement, if any, passes. Leaves
without a ``required_view`` are dropped. Views the store does not know are
simply denied, never an error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
import yaml

from brokerdesk.authz.batch import BatchEvaluator
from brokerdesk.authz.errors import NavigationConfigError
from brokerdesk.authz.evaluator import PermissionEvaluator, identity_usable
from brokerdesk.authz.roles import KnownRole

if TYPE_CHECKING:
    from brokerdesk.identity.context import IdentityContext

logger = logging.getLogger(__name__)


class NavigationNode(BaseModel):
    # YAML uses snake_case keys; the API serializes camelCase.
    model_config = ConfigDict(frozen=True, extra="forbid", alias_generator=to_camel, populate_by_name=True)

    title: str
    url: str = "#"
    icon: str | None = None
    required_view: str | None = None
    required_permission: str | None = None
    items: tuple[NavigationNode, ...] | None = None

    @property
    def is_group(self) -> bool:
        return self.items is not None

    def requirement(self) -> tuple[str, str | None] | None:
        if not self.required_view:
            return None
        return (self.required_view, self.required_permission or None)


NavigationTree = tuple[NavigationNode, ...]


class NavigationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    trees: dict[KnownRole, NavigationTree] = Field(default_factory=dict)

    def tree_for(self, role: KnownRole) -> NavigationTree:
        if role is KnownRole.UNKNOWN:
            return ()
        return self.trees.get(role, ())


def load_navigation_config(path: Path) -> NavigationConfig:
    """Load and validate the navigation YAML from disk."""

    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if not isinstance(raw, dict) or "navigation" not in raw:
        raise NavigationConfigError(f"Missing top-level 'navigation' key in config: {path}")

    trees_raw = raw["navigation"] or {}
    if not isinstance(trees_raw, dict):
        raise NavigationConfigError("navigation must be a mapping of role name to menu list")

    trees: dict[KnownRole, NavigationTree] = {}
    for role_name, nodes in trees_raw.items():
        role = KnownRole.parse(str(role_name))
        if role is KnownRole.UNKNOWN:
            raise NavigationConfigError(f"navigation references unknown role {role_name!r}")
        if not isinstance(nodes, list):
            raise NavigationConfigError(f"navigation.{role_name} must be a list")
        try:
            trees[role] = tuple(NavigationNode.model_validate(node) for node in nodes)
        except ValidationError as exc:
            raise NavigationConfigError(f"navigation.{role_name} is invalid: {exc}") from exc

    return NavigationConfig(trees=trees)


# ---- Tree helpers ----------------------------------------------------------------------


def _walk(tree: Iterable[NavigationNode]) -> Iterable[NavigationNode]:
    for node in tree:
        yield node
        if node.items:
            yield from _walk(node.items)


def all_required_views(tree: Iterable[NavigationNode]) -> list[str]:
    """Every view name referenced anywhere in ``tree``, sorted."""
    return sorted({node.required_view for node in _walk(tree) if node.required_view})


def prune_tree(tree: Iterable[NavigationNode], is_allowed: Callable[[NavigationNode], bool]) -> NavigationTree:
    """
    Return the subtree of nodes the predicate allows.

    ``is_allowed`` is asked about leaves and about groups that declare their
    own requirement. Empty groups are removed.
    """

    kept: list[NavigationNode] = []
    for node in tree:
        if node.is_group:
            if node.requirement() is not None and not is_allowed(node):
                continue
            children = prune_tree(node.items or (), is_allowed)
            if children:
                kept.append(node.model_copy(update={"items": children}))
        elif node.requirement() is not None and is_allowed(node):
            kept.append(node)
    return tuple(kept)


# ---- Filter ----------------------------------------------------------------------------


class NavigationFilter:
    """
    Computes the navigation a given identity may see.

    View-only checks run concurrently; view + permission checks go through a
    single batch call.
    """

    def __init__(self, evaluator: PermissionEvaluator, batch: BatchEvaluator | None = None) -> None:
        self._evaluator = evaluator
        self._batch = batch or BatchEvaluator(evaluator)

    async def filter_tree(self, identity: IdentityContext | None, tree: NavigationTree) -> NavigationTree:
        if not identity_usable(identity):
            return ()

        requirements = {node.requirement() for node in _walk(tree)} - {None}
        views = sorted(view for view, permission in requirements if permission is None)
        pairs = sorted((view, permission) for view, permission in requirements if permission is not None)

        view_results, pair_results = await asyncio.gather(
            asyncio.gather(*(self._evaluator.has_view_access(identity, view) for view in views)),
            self._batch.evaluate_many(identity, pairs),
        )

        allowed: dict[tuple[str, str | None], bool] = {}
        allowed.update(((view, None), granted) for view, granted in zip(views, view_results))
        allowed.update(zip(pairs, pair_results))

        filtered = prune_tree(tree, lambda node: allowed.get(node.requirement(), False))
        logger.debug(
            "Navigation filtered user=%s requirements=%d granted=%d",
            identity.user_id,
            len(allowed),
            sum(1 for granted in allowed.values() if granted),
        )
        return filtered
