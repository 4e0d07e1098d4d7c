"""Closed set of dashboard roles known to the navigation layer."""

from __future__ import annotations

from enum import Enum


class KnownRole(str, Enum):
    ADMIN = "admin"
    BROKER = "broker"
    VENDEDOR = "vendedor"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, role_name: str | None) -> KnownRole:
        """
        Map a role name from the identity token to a known role.

        Matching is case-insensitive and accepts the aliases the backend
        issues. Anything else is ``UNKNOWN``; there is no default role.
        """

        if not role_name:
            return cls.UNKNOWN
        return _ALIASES.get(role_name.strip().lower(), cls.UNKNOWN)

    @property
    def default_route(self) -> str | None:
        """Landing route after login; None for ``UNKNOWN``."""
        return _DEFAULT_ROUTES.get(self)


_ALIASES: dict[str, KnownRole] = {
    "admin": KnownRole.ADMIN,
    "administrador": KnownRole.ADMIN,
    "broker": KnownRole.BROKER,
    "brokers": KnownRole.BROKER,
    "vendedor": KnownRole.VENDEDOR,
}

_DEFAULT_ROUTES: dict[KnownRole, str] = {
    KnownRole.ADMIN: "/admin/dashboard",
    KnownRole.BROKER: "/broker/dashboard",
    KnownRole.VENDEDOR: "/vendedor/dashboard",
}
