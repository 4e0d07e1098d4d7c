"""
Tests for the authorization ORM models and seed data.

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from brokerdesk.db.init_db import GRANTS, VIEWS, init_db
from brokerdesk.db.session import make_session_factory
from brokerdesk.models.authz import Permission, Role, RoleView, RoleViewPermission, User, View


def test_grant_rows_link_role_view_permission(db_session):
    role = Role(name="vendedor", description="Sales", access_level=1)
    view = View(name="leads", route_pattern="/leads")
    perm = Permission(name="delete")
    db_session.add_all([role, view, perm])
    db_session.flush()

    db_session.add(RoleView(role_id=role.id, view_id=view.id))
    db_session.add(RoleViewPermission(role_id=role.id, view_id=view.id, permission_id=perm.id))
    db_session.add(User(id="u-1", username="vera", email="vera@example.com", role_id=role.id))
    db_session.commit()

    grant = db_session.scalars(select(RoleViewPermission)).one()
    assert grant.role.name == "vendedor"
    assert grant.view.route_pattern == "/leads"
    assert grant.permission.name == "delete"

    user = db_session.get(User, "u-1")
    assert user.role is role
    assert [u.id for u in role.users] == ["u-1"]


def test_defaults(db_session):
    view = View(name="dashboard", route_pattern="/dashboard")
    db_session.add(view)
    db_session.commit()

    assert view.is_active is True
    assert view.created_at is not None
    assert view.description is None


def test_user_without_role(db_session):
    db_session.add(User(id="u-2", username="nobody", email="nobody@example.com"))
    db_session.commit()

    assert db_session.get(User, "u-2").role is None


def test_view_name_is_unique(db_session):
    db_session.add(View(name="leads", route_pattern="/leads"))
    db_session.flush()
    db_session.add(View(name="leads", route_pattern="/leads/*"))

    with pytest.raises(IntegrityError):
        db_session.flush()


def test_role_view_is_keyed_by_role_and_view(db_session):
    role = Role(name="broker")
    view = View(name="polizas", route_pattern="/polizas")
    db_session.add_all([role, view])
    db_session.flush()

    db_session.add(RoleView(role_id=role.id, view_id=view.id))
    db_session.flush()

    assert db_session.get(RoleView, (role.id, view.id)) is not None


def test_init_db_seeds_once(engine):
    factory = make_session_factory(engine)

    init_db(engine, factory)
    init_db(engine, factory)

    with factory() as db:
        assert db.scalar(select(func.count()).select_from(Role)) == len(GRANTS)
        assert db.scalar(select(func.count()).select_from(View)) == len(VIEWS)
        assert db.scalar(select(func.count()).select_from(RoleView)) == sum(len(v) for v in GRANTS.values())
        assert db.scalar(select(func.count()).select_from(User)) == 3
