"""Identity value produced from a decoded session token."""

from __future__ import annotations

from dataclasses import dataclass
import time

from brokerdesk.authz.roles import KnownRole


@dataclass(frozen=True)
class IdentityContext:
    """
    The current user as seen by the authorization engine.

    Passed explicitly to every evaluator call; never stored in module state.
    """

    user_id: str
    """Token subject (``sub``)."""

    role_name: str | None
    """Role name from the ``role``/``rol`` claim; may be None."""

    role_id: str | None = None

    username: str | None = None
    """For display only; never used for authorization."""

    expires_at: int | None = None
    """``exp`` claim, seconds since epoch."""

    @property
    def role(self) -> KnownRole:
        return KnownRole.parse(self.role_name)

    @property
    def role_key(self) -> str:
        """Key that groups cached decisions for this identity's role."""
        return self.role_id or self.role_name or ""

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return self.expires_at <= current

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict."""
        return {
            "user_id": self.user_id,
            "role_name": self.role_name,
            "role_id": self.role_id,
            "username": self.username,
            "expires_at": self.expires_at,
        }
