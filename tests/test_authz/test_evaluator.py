"""Tests for the fail-closed permission evaluator."""

import asyncio
import time
from unittest.mock import MagicMock

import pytest

from brokerdesk.authz.cache import DecisionCache
from brokerdesk.authz.errors import AuthzStoreError
from brokerdesk.authz.evaluator import PermissionEvaluator, identity_usable
from brokerdesk.identity import IdentityContext

VENDEDOR = IdentityContext(user_id="u-1", role_name="vendedor", role_id="3")


def _run(coro):
    return asyncio.run(coro)


def test_decisions_follow_store(fake_store):
    evaluator = PermissionEvaluator(fake_store)

    assert _run(evaluator.has_view_access(VENDEDOR, "leads")) is True
    assert _run(evaluator.has_view_access(VENDEDOR, "usuarios")) is False
    assert _run(evaluator.has_permission(VENDEDOR, "leads", "update")) is True
    assert _run(evaluator.has_permission(VENDEDOR, "leads", "delete")) is False
    assert _run(evaluator.check_route_access(VENDEDOR, "/leads/7/editar")) is True
    assert _run(evaluator.check_route_access(VENDEDOR, "/leads/7/8/editar")) is False


def test_crud_shortcuts(fake_store):
    evaluator = PermissionEvaluator(fake_store)

    assert _run(evaluator.can_create(VENDEDOR, "leads")) is True
    assert _run(evaluator.can_read(VENDEDOR, "leads")) is True
    assert _run(evaluator.can_update(VENDEDOR, "leads")) is True
    assert _run(evaluator.can_delete(VENDEDOR, "leads")) is False
    assert ("verify_permission", "u-1", "leads", "delete") in fake_store.calls


@pytest.mark.parametrize(
    "identity",
    [
        None,
        IdentityContext(user_id="", role_name="vendedor"),
        IdentityContext(user_id="u-1", role_name="vendedor", expires_at=int(time.time()) - 60),
    ],
)
def test_no_usable_identity_denies_without_store(fake_store, identity):
    evaluator = PermissionEvaluator(fake_store)

    assert identity_usable(identity) is False
    assert _run(evaluator.has_view_access(identity, "leads")) is False
    assert _run(evaluator.has_permission(identity, "leads", "read")) is False
    assert _run(evaluator.check_route_access(identity, "/leads")) is False
    assert fake_store.calls == []


@pytest.mark.parametrize(
    "error",
    [AuthzStoreError("service unavailable"), ConnectionError("reset"), RuntimeError("boom")],
)
def test_store_errors_deny(fake_store, error):
    fake_store.fail_with = error
    evaluator = PermissionEvaluator(fake_store)

    assert _run(evaluator.has_view_access(VENDEDOR, "leads")) is False
    assert _run(evaluator.has_permission(VENDEDOR, "leads", "read")) is False
    assert _run(evaluator.check_route_access(VENDEDOR, "/leads")) is False


def test_timeout_denies(fake_store):
    fake_store.delay = 0.3
    evaluator = PermissionEvaluator(fake_store, timeout_seconds=0.05)

    assert _run(evaluator.has_view_access(VENDEDOR, "leads")) is False


def test_non_boolean_answer_denies():
    store = MagicMock()
    store.verify_view.return_value = "yes"
    store.verify_permission.return_value = 1
    evaluator = PermissionEvaluator(store)

    assert _run(evaluator.has_view_access(VENDEDOR, "leads")) is False
    assert _run(evaluator.has_permission(VENDEDOR, "leads", "read")) is False


def test_decisions_are_idempotent(fake_store):
    evaluator = PermissionEvaluator(fake_store)

    first = [_run(evaluator.has_permission(VENDEDOR, "leads", p)) for p in ("read", "delete")]
    second = [_run(evaluator.has_permission(VENDEDOR, "leads", p)) for p in ("read", "delete")]
    assert first == second == [True, False]


def test_cache_serves_repeat_checks(fake_store):
    cache = DecisionCache()
    evaluator = PermissionEvaluator(fake_store, cache=cache)

    assert _run(evaluator.has_permission(VENDEDOR, "leads", "read")) is True
    assert _run(evaluator.has_permission(VENDEDOR, "leads", "read")) is True
    assert _run(evaluator.has_view_access(VENDEDOR, "usuarios")) is False
    assert _run(evaluator.has_view_access(VENDEDOR, "usuarios")) is False

    assert len(fake_store.calls) == 2
    assert len(cache) == 2


def test_failures_are_not_cached(fake_store):
    cache = DecisionCache()
    evaluator = PermissionEvaluator(fake_store, cache=cache)

    fake_store.fail_with = AuthzStoreError("down")
    assert _run(evaluator.has_view_access(VENDEDOR, "leads")) is False
    assert len(cache) == 0

    fake_store.fail_with = None
    assert _run(evaluator.has_view_access(VENDEDOR, "leads")) is True


def test_concurrent_checks(fake_store):
    evaluator = PermissionEvaluator(fake_store)

    async def _all():
        return await asyncio.gather(
            evaluator.has_view_access(VENDEDOR, "leads"),
            evaluator.has_view_access(VENDEDOR, "usuarios"),
            evaluator.has_permission(VENDEDOR, "clientes", "read"),
        )

    assert _run(_all()) == [True, False, True]
