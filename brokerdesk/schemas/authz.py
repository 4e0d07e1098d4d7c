from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictBool
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case attributes."""

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


# ---- Catalogue -------------------------------------------------------------------------


class ViewOut(CamelModel):
    id: int
    name: str
    description: str | None = None
    route_pattern: str
    is_active: bool
    created_at: datetime


class PermissionOut(CamelModel):
    id: int
    name: str
    description: str | None = None
    is_active: bool
    created_at: datetime


class RoleOut(CamelModel):
    id: int
    name: str
    description: str | None = None
    access_level: int
    is_active: bool
    created_at: datetime


class RoleList(CamelModel):
    roles: list[RoleOut]
    total: int


class ViewList(CamelModel):
    views: list[ViewOut]
    total: int


class PermissionList(CamelModel):
    permissions: list[PermissionOut]
    total: int


class RolePermissionsOut(CamelModel):
    """Views assigned to a role and, per view id, the permissions granted in it."""

    views: list[ViewOut]
    permissions: dict[str, list[PermissionOut]] = Field(default_factory=dict)


class StatisticsOut(CamelModel):
    total_views: int
    total_permissions: int
    total_roles: int
    total_assignments: int


class MessageOut(CamelModel):
    message: str


# ---- Verification ----------------------------------------------------------------------


class VerifyPermissionIn(CamelModel):
    user_id: str
    view: str
    permission: str


class VerifyViewIn(CamelModel):
    user_id: str
    view: str


class VerifyRouteIn(CamelModel):
    user_id: str
    route: str


class VerifyPermissionBatchIn(CamelModel):
    queries: list[VerifyPermissionIn] = Field(default_factory=list)


class VerifyOut(CamelModel):
    # "yes", 1 and "true" are not grants
    granted: StrictBool
    message: str | None = None


class BatchItemOut(CamelModel):
    granted: StrictBool
