from __future__ import annotations

from collections.abc import Callable


def require_permission(view: str, permission: str) -> Callable:
    """
    Require ``permission`` within ``view`` for this endpoint.

    Implementation detail:
    - The decorator does NOT check anything itself.
    - It attaches metadata that the global security dependency reads after
      routing and checks through the permission evaluator.
    """

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_required_permissions__", set()))
        setattr(fn, "__security_required_permissions__", existing | {(view, permission)})
        return fn

    return decorator


def public() -> Callable:
    """Mark an endpoint as reachable without a bearer identity."""

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_public__", True)
        return fn

    return decorator
