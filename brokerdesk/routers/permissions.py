from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from brokerdesk.authz.evaluator import PermissionEvaluator
from brokerdesk.authz.store import AuthorizationStore, PermissionQuery
from brokerdesk.identity import IdentityContext
from brokerdesk.schemas.authz import (
    BatchItemOut,
    MessageOut,
    PermissionList,
    RoleList,
    RolePermissionsOut,
    StatisticsOut,
    VerifyOut,
    VerifyPermissionBatchIn,
    VerifyPermissionIn,
    VerifyRouteIn,
    VerifyViewIn,
    ViewList,
    ViewOut,
)
from brokerdesk.security.decorators import require_permission
from brokerdesk.security.dependencies import get_evaluator, get_store

router = APIRouter(prefix="/permissions", tags=["permissions"])

ADMIN_VIEW = "permisos"


def _subject(user_id: str) -> IdentityContext:
    # The user being asked about; the store resolves their role.
    return IdentityContext(user_id=user_id, role_name=None)


def _verdict(granted: bool) -> VerifyOut:
    return VerifyOut(granted=granted, message="Access granted" if granted else "Access denied")


# ---- Verification -----------------------------------------------------------------------


@router.post("/verify-permission", response_model=VerifyOut)
async def verify_permission(
    payload: VerifyPermissionIn,
    evaluator: PermissionEvaluator = Depends(get_evaluator),
) -> VerifyOut:
    granted = await evaluator.has_permission(_subject(payload.user_id), payload.view, payload.permission)
    return _verdict(granted)


@router.post("/verify-view", response_model=VerifyOut)
async def verify_view(
    payload: VerifyViewIn,
    evaluator: PermissionEvaluator = Depends(get_evaluator),
) -> VerifyOut:
    granted = await evaluator.has_view_access(_subject(payload.user_id), payload.view)
    return _verdict(granted)


@router.post("/verify-route", response_model=VerifyOut)
async def verify_route(
    payload: VerifyRouteIn,
    evaluator: PermissionEvaluator = Depends(get_evaluator),
) -> VerifyOut:
    granted = await evaluator.check_route_access(_subject(payload.user_id), payload.route)
    return _verdict(granted)


@router.post("/verify-permission-batch", response_model=list[BatchItemOut])
async def verify_permission_batch(
    payload: VerifyPermissionBatchIn,
    evaluator: PermissionEvaluator = Depends(get_evaluator),
) -> list[BatchItemOut]:
    # Queries may span several users, so this goes to the store in one call
    # instead of through a per-identity BatchEvaluator.
    queries = [PermissionQuery(q.user_id, q.view, q.permission) for q in payload.queries]
    answers = await evaluator.lookup("permission batch", evaluator.store.verify_permission_batch, queries)
    if not isinstance(answers, list) or len(answers) != len(queries):
        answers = [False] * len(queries)
    return [BatchItemOut(granted=answer is True) for answer in answers]


# ---- Catalogue --------------------------------------------------------------------------


@router.get("/roles", response_model=RoleList)
def list_roles(store: AuthorizationStore = Depends(get_store)) -> RoleList:
    roles = store.list_roles()
    return RoleList(roles=roles, total=len(roles))


@router.get("/views", response_model=ViewList)
def list_views(store: AuthorizationStore = Depends(get_store)) -> ViewList:
    views = store.list_views()
    return ViewList(views=views, total=len(views))


@router.get("/views/{view_id}", response_model=ViewOut)
def get_view(view_id: int, store: AuthorizationStore = Depends(get_store)) -> ViewOut:
    view = store.get_view(view_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="View not found")
    return view


@router.get("/permissions", response_model=PermissionList)
def list_permissions(store: AuthorizationStore = Depends(get_store)) -> PermissionList:
    permissions = store.list_permissions()
    return PermissionList(permissions=permissions, total=len(permissions))


@router.get("/roles/{role_id}/views", response_model=list[ViewOut])
def views_for_role(role_id: int, store: AuthorizationStore = Depends(get_store)) -> list[ViewOut]:
    return store.views_for_role(role_id)


@router.get("/roles/{role_id}/permissions", response_model=RolePermissionsOut)
@require_permission(ADMIN_VIEW, "read")
def role_permissions(role_id: int, store: AuthorizationStore = Depends(get_store)) -> RolePermissionsOut:
    return store.role_permissions(role_id)


@router.get("/statistics", response_model=StatisticsOut)
@require_permission(ADMIN_VIEW, "read")
def statistics(store: AuthorizationStore = Depends(get_store)) -> StatisticsOut:
    return store.statistics()


# ---- Administration ---------------------------------------------------------------------


@router.post("/roles/{role_id}/views/{view_id}/assign", response_model=MessageOut)
@require_permission(ADMIN_VIEW, "update")
def assign_view(role_id: int, view_id: int, store: AuthorizationStore = Depends(get_store)) -> MessageOut:
    return MessageOut(message=store.assign_view(role_id, view_id))


@router.delete("/roles/{role_id}/views/{view_id}/unassign", response_model=MessageOut)
@require_permission(ADMIN_VIEW, "update")
def unassign_view(role_id: int, view_id: int, store: AuthorizationStore = Depends(get_store)) -> MessageOut:
    return MessageOut(message=store.unassign_view(role_id, view_id))
