from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from brokerdesk.authz.evaluator import PermissionEvaluator
from brokerdesk.authz.navigation import NavigationConfig, NavigationFilter
from brokerdesk.identity import IdentityContext
from brokerdesk.schemas.navigation import NavigationOut
from brokerdesk.security.dependencies import get_current_identity, get_evaluator

router = APIRouter(tags=["navigation"])


def get_navigation_config(request: Request) -> NavigationConfig:
    return request.app.state.navigation


@router.get("/navigation", response_model=NavigationOut)
async def navigation(
    identity: IdentityContext = Depends(get_current_identity),
    config: NavigationConfig = Depends(get_navigation_config),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
) -> NavigationOut:
    """Menu for the caller's role, reduced to what the caller may open."""
    role = identity.role
    items = await NavigationFilter(evaluator).filter_tree(identity, config.tree_for(role))
    return NavigationOut(role=role, default_route=role.default_route, items=list(items))
