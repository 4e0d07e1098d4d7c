"""
Decode session tokens into an ``IdentityContext``.

The auth backend issues a JWT whose claims carry the user id (``sub``) and the
user's role (``role: {id, name}``; older tokens use ``rol: {idRol, nombre}`` or
a top-level ``idRol``). This module only reads those claims. When a shared
secret is configured the signature is checked too; otherwise the token is
assumed to have been validated upstream and only its lifetime is checked.

A missing, expired or undecodable token yields *no identity*; callers treat
that as "deny everything".
"""

from __future__ import annotations

import logging
from typing import Any

import jwt

from .config import IdentityConfig
from .context import IdentityContext

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Raised when a token cannot be turned into an identity. Do not log the token."""


def _claim_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return str(int(value))
    return str(value)


def _extract_claims(payload: dict[str, Any]) -> IdentityContext:
    """
    Build an ``IdentityContext`` from a decoded payload.

    Claim mapping:

    * **sub** (fallback ``idUsuario``) -> ``user_id``; required.
    * **role.name** / **rol.nombre** -> ``role_name``.
    * **role.id** / **rol.idRol** / **idRol** -> ``role_id``.
    * **nombreUsuario** / **preferred_username** -> ``username``.
    """

    user_id = _claim_str(payload.get("sub") or payload.get("idUsuario"))
    if not user_id:
        raise IdentityError("Token has no subject")

    role_name: str | None = None
    role_id: str | None = None
    for key, name_key, id_key in (("role", "name", "id"), ("rol", "nombre", "idRol")):
        raw_role = payload.get(key)
        if isinstance(raw_role, dict):
            role_name = role_name or _claim_str(raw_role.get(name_key))
            role_id = role_id or _claim_str(raw_role.get(id_key))
        elif isinstance(raw_role, str) and not role_name:
            role_name = raw_role or None
    role_id = role_id or _claim_str(payload.get("idRol"))

    username = _claim_str(payload.get("nombreUsuario") or payload.get("preferred_username"))

    exp = payload.get("exp")
    expires_at = int(exp) if isinstance(exp, (int, float)) else None

    return IdentityContext(
        user_id=user_id,
        role_name=role_name,
        role_id=role_id,
        username=username,
        expires_at=expires_at,
    )


class IdentityDecoder:
    """Decodes tokens with a fixed configuration."""

    def __init__(self, config: IdentityConfig | None = None) -> None:
        self._config = config or IdentityConfig.from_environ()

    def decode(self, token: str) -> IdentityContext:
        """
        Decode ``token`` and return its identity.

        Raises IdentityError if the token is empty, malformed, expired, lacks a
        subject, or (when a secret is configured) has an invalid signature.
        """
        if not token:
            raise IdentityError("Missing token")

        options = {
            "verify_signature": self._config.verify_signature,
            "verify_exp": True,
            "require": ["exp"],
        }
        try:
            payload = jwt.decode(
                token,
                self._config.secret or "",
                algorithms=list(self._config.algorithms),
                leeway=self._config.leeway_seconds,
                options=options,
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("Token expired")
            raise IdentityError("Token expired") from e
        except jwt.MissingRequiredClaimError as e:
            logger.info("Token missing claim: %s", e.claim)
            raise IdentityError("Invalid token: missing claim") from e
        except jwt.InvalidTokenError as e:
            logger.info("Token invalid: %s", type(e).__name__)
            raise IdentityError("Invalid token") from e

        if not isinstance(payload, dict):
            raise IdentityError("Invalid token payload")
        return _extract_claims(payload)


def decode_identity(token: str | None, config: IdentityConfig | None = None) -> IdentityContext | None:
    """
    Convenience function: decode ``token`` or return None when there is no
    usable identity.
    """
    if not token:
        return None
    try:
        return IdentityDecoder(config=config).decode(token)
    except IdentityError:
        return None
