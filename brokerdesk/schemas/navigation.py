from __future__ import annotations

from brokerdesk.authz.navigation import NavigationNode
from brokerdesk.authz.roles import KnownRole
from brokerdesk.schemas.authz import CamelModel


class NavigationOut(CamelModel):
    role: KnownRole
    default_route: str | None = None
    items: list[NavigationNode]
