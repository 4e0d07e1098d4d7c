"""Identity decoding configuration from environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _getenv(key: str, default: str | None = None) -> str | None:
    return os.environ.get(key, default)


def _getenv_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class IdentityConfig:
    """
    How session tokens issued by the auth backend are decoded.

    Optional:
        IDENTITY_JWT_SECRET: Shared secret. When set, the token signature is
            verified; when unset, claims are read from an already-validated token.
        IDENTITY_JWT_ALGORITHMS: Comma-separated algorithms (default HS256).
        IDENTITY_LEEWAY_SECONDS: Seconds of tolerance for exp (default 30).
    """

    secret: str | None
    algorithms: tuple[str, ...]
    leeway_seconds: int

    @property
    def verify_signature(self) -> bool:
        return self.secret is not None

    @classmethod
    def from_environ(cls) -> IdentityConfig:
        raw_algorithms = _getenv("IDENTITY_JWT_ALGORITHMS", "HS256") or "HS256"
        algorithms = tuple(a.strip() for a in raw_algorithms.split(",") if a.strip())
        if not algorithms:
            raise ValueError("IDENTITY_JWT_ALGORITHMS must name at least one algorithm")
        return cls(
            secret=_strip_or_none(_getenv("IDENTITY_JWT_SECRET")),
            algorithms=algorithms,
            leeway_seconds=_getenv_int("IDENTITY_LEEWAY_SECONDS", 30),
        )


def _strip_or_none(s: str | None) -> str | None:
    if s is None:
        return None
    t = s.strip()
    return t if t else None
