"""
Identity resolution: turn a session token into an ``IdentityContext``.

This package has no dependency on the database or the HTTP layer. The
authorization engine consumes the resulting identity; it never decodes tokens
itself.
"""

from .config import IdentityConfig
from .context import IdentityContext
from .decoder import IdentityDecoder, IdentityError, decode_identity

__all__ = [
    "IdentityConfig",
    "IdentityContext",
    "IdentityDecoder",
    "IdentityError",
    "decode_identity",
]
