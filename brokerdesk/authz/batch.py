"""
Batch Evaluator: many (view, permission) checks in one store round-trip.

The result always has the same length and order as the queries. If the
aggregated lookup fails, or comes back with the wrong number of answers,
every entry is ``False``.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import TYPE_CHECKING

from brokerdesk.authz.evaluator import PermissionEvaluator, identity_usable
from brokerdesk.authz.store import PermissionQuery

if TYPE_CHECKING:
    from brokerdesk.identity.context import IdentityContext

logger = logging.getLogger(__name__)


class BatchEvaluator:
    """Shares store, timeout and decision cache with ``evaluator``."""

    def __init__(self, evaluator: PermissionEvaluator) -> None:
        self._evaluator = evaluator

    async def evaluate_many(
        self,
        identity: IdentityContext | None,
        queries: Sequence[tuple[str, str]],
    ) -> list[bool]:
        denied = [False] * len(queries)
        if not queries:
            return []
        if not identity_usable(identity):
            return denied

        cache = self._evaluator.cache
        results: list[bool | None] = [None] * len(queries)
        if cache is not None:
            for i, (view, permission) in enumerate(queries):
                results[i] = cache.get(identity.role_key, ("permission", view, permission))

        pending = [i for i, r in enumerate(results) if r is None]
        if pending:
            batch = [PermissionQuery(identity.user_id, queries[i][0], queries[i][1]) for i in pending]
            answers = await self._evaluator.lookup("permission batch", self._evaluator.store.verify_permission_batch, batch)
            if answers is None:
                return denied
            if not isinstance(answers, list) or len(answers) != len(batch):
                logger.warning(
                    "Authz: batch answer size mismatch expected=%d got=%s; denying all",
                    len(batch),
                    len(answers) if isinstance(answers, list) else type(answers).__name__,
                )
                return denied

            for i, answer in zip(pending, answers):
                granted = answer is True
                results[i] = granted
                if cache is not None:
                    view, permission = queries[i]
                    cache.put(identity.role_key, ("permission", view, permission), granted)

        return [r is True for r in results]
