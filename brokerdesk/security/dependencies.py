from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status

from brokerdesk.authz.evaluator import PermissionEvaluator
from brokerdesk.authz.store import AuthorizationStore
from brokerdesk.identity import IdentityContext, IdentityDecoder, IdentityError
from brokerdesk.security.auth import extract_bearer_token

logger = logging.getLogger(__name__)


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not configured. Did app startup run?")
    return value


def get_store(request: Request) -> AuthorizationStore:
    return _state(request, "authz_store")


def get_evaluator(request: Request) -> PermissionEvaluator:
    return _state(request, "evaluator")


def get_identity_decoder(request: Request) -> IdentityDecoder:
    return _state(request, "identity_decoder")


def get_current_identity(request: Request) -> IdentityContext:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return identity


async def enforce_security(
    request: Request,
    decoder: IdentityDecoder = Depends(get_identity_decoder),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
) -> None:
    """
    Global security dependency.

    Runs after routing, so it can read the metadata set by
    ``brokerdesk.security.decorators``:
    - ``@public()`` endpoints skip authentication entirely;
    - everything else needs a decodable bearer token;
    - ``@require_permission(view, permission)`` endpoints additionally need
      that grant, checked through the evaluator (fail-closed).
    """

    endpoint = request.scope.get("endpoint")
    if endpoint is not None and getattr(endpoint, "__security_public__", False):
        return

    token = extract_bearer_token(request)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    try:
        identity = decoder.decode(token)
    except IdentityError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token") from exc
    request.state.identity = identity

    required = set(getattr(endpoint, "__security_required_permissions__", set())) if endpoint else set()
    for view, permission in sorted(required):
        if not await evaluator.has_permission(identity, view, permission):
            logger.info(
                "Forbidden user=%s path=%s missing=%s:%s", identity.user_id, request.url.path, view, permission
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission {permission!r} on view {view!r}",
            )
