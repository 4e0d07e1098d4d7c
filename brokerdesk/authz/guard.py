"""
Route guard for navigation.

Owns at most one in-flight route check. Navigating again, to any path, cancels
the previous check, and a decision that resolves after a newer navigation
started is discarded rather than applied.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from brokerdesk.authz.session import AuthSession

logger = logging.getLogger(__name__)


class RouteGuard:
    def __init__(self, session: AuthSession) -> None:
        self._session = session
        self._current_path: str | None = None
        self._generation = 0
        self._pending: asyncio.Task[bool] | None = None
        self.allowed: bool | None = None
        """Decision applied for ``current_path``; None while pending."""

    @property
    def current_path(self) -> str | None:
        return self._current_path

    async def navigate(self, path: str) -> bool:
        """
        Check access to ``path`` and apply the decision.

        Returns False when access is denied, or when the check was abandoned
        by ``cancel()`` or a later ``navigate()`` before it resolved.
        Cancelling the calling task itself still raises ``CancelledError``.
        """
        self.cancel()
        self._generation += 1
        generation = self._generation
        self._current_path = path
        self.allowed = None

        task = asyncio.ensure_future(self._session.check_route_access(path))
        self._pending = task
        try:
            # wait() leaves the check alone when the guard cancels it, so a
            # CancelledError here always belongs to the caller.
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._pending is task:
                self._pending = None

        if task.cancelled():
            logger.debug("Route check abandoned path=%s", path)
            return False
        if generation != self._generation:
            logger.debug("Discarding stale route decision path=%s current=%s", path, self._current_path)
            return False

        granted = task.result()
        self.allowed = granted
        return granted

    def cancel(self) -> None:
        """Abandon the in-flight check, if any."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
