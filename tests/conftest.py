"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. Store tests use a seeded
in-memory database; evaluator-level tests use the in-memory FakeStore below.
"""
from __future__ import annotations

import time

import pytest
from sqlalchemy.orm import Session, sessionmaker

from brokerdesk.authz.route_matcher import matches
from brokerdesk.authz.store import SqlAuthorizationStore
from brokerdesk.db.init_db import init_db
from brokerdesk.db.session import make_engine, make_session_factory


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    engine = make_engine(TEST_DB_URL)
    yield engine
    engine.dispose()


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from brokerdesk.db.base import Base
    import brokerdesk.models.authz  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    Use this in tests that need a database (e.g. data layer tests). The
    transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def session_factory(engine):
    """Session factory over a seeded catalogue (see brokerdesk.db.init_db)."""
    factory = make_session_factory(engine)
    init_db(engine, factory)
    return factory


@pytest.fixture
def store(session_factory):
    return SqlAuthorizationStore(session_factory)



class FakeStore:
    """
    In-memory ``AuthorizationStore`` for evaluator-level tests.

    ``views`` maps user id to {view name: route pattern}; ``grants`` maps user
    id to a set of (view, permission) pairs. ``calls`` records every store call.
    """

    def __init__(self, views=None, grants=None):
        self.views = views or {}
        self.grants = grants or {}
        self.calls: list[tuple] = []
        self.fail_with: Exception | None = None
        self.delay: float = 0.0

    def _enter(self, *call):
        self.calls.append(call)
        if self.delay:
            time.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

    def verify_view(self, user_id, view):
        self._enter("verify_view", user_id, view)
        return view in self.views.get(user_id, {})

    def verify_permission(self, user_id, view, permission):
        self._enter("verify_permission", user_id, view, permission)
        return (view, permission) in self.grants.get(user_id, set())

    def verify_route(self, user_id, route):
        self._enter("verify_route", user_id, route)
        return any(matches(route, pattern) for pattern in self.views.get(user_id, {}).values())

    def verify_permission_batch(self, queries):
        self._enter("verify_permission_batch", tuple(queries))
        return [(q.view, q.permission) in self.grants.get(q.user_id, set()) for q in queries]

    def assign_view(self, role_id, view_id):
        self._enter("assign_view", role_id, view_id)
        return "assigned"

    def unassign_view(self, role_id, view_id):
        self._enter("unassign_view", role_id, view_id)
        return "unassigned"


@pytest.fixture
def fake_store():
    """Vendedor-like grants for user ``u-1``."""
    return FakeStore(
        views={
            "u-1": {
                "dashboard": "/dashboard",
                "leads": "/leads",
                "leads_editar": "/leads/*/editar",
                "clientes": "/clientes",
            }
        },
        grants={
            "u-1": {
                ("leads", "create"),
                ("leads", "read"),
                ("leads", "update"),
                ("clientes", "read"),
            }
        },
    )
