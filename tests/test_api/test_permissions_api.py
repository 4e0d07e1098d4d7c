"""
API tests for the authorization and navigation endpoints.

The app runs its real lifespan against a seeded SQLite file database; tokens are
signed with a test secret.
"""
from __future__ import annotations

from pathlib import Path
import time

import jwt
import pytest
from fastapi.testclient import TestClient

from brokerdesk.identity import IdentityConfig
from brokerdesk.main import create_app
from brokerdesk.settings import Settings

REPO_CONFIG = Path(__file__).resolve().parents[2] / "config" / "navigation.yaml"
SECRET = "t" * 32


def _token(user_id: str, role: str, ttl: int = 300) -> str:
    payload = {"sub": user_id, "role": {"name": role}, "exp": int(time.time()) + ttl}
    return jwt.encode(payload, SECRET, algorithm="HS256")


def _auth(user_id: str = "usr-admin", role: str = "admin") -> dict[str, str]:
    return {"Authorization": f"Bearer {_token(user_id, role)}"}


@pytest.fixture
def client(tmp_path):
    settings = Settings(
        db_url=f"sqlite:///{tmp_path / 'api.db'}",
        navigation_config_path=str(REPO_CONFIG),
        log_level="DEBUG",
    )
    identity_config = IdentityConfig(secret=SECRET, algorithms=("HS256",), leeway_seconds=0)
    with TestClient(create_app(settings, identity_config)) as c:
        yield c


def _ids(client) -> tuple[dict[str, int], dict[str, int]]:
    roles = client.get("/permissions/roles", headers=_auth()).json()["roles"]
    views = client.get("/permissions/views", headers=_auth()).json()["views"]
    return {r["name"]: r["id"] for r in roles}, {v["name"]: v["id"] for v in views}


# ---- Authentication -------------------------------------------------------------------


def test_health_is_public(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_missing_token_is_401(client):
    assert client.get("/permissions/roles").status_code == 401
    assert client.post("/permissions/verify-view", json={"userId": "usr-admin", "view": "leads"}).status_code == 401


def test_malformed_header_is_400(client):
    resp = client.get("/permissions/roles", headers={"Authorization": "Token abc"})
    assert resp.status_code == 400


@pytest.mark.parametrize(
    "token",
    [
        "not-a-jwt",
        jwt.encode({"sub": "usr-admin", "exp": int(time.time()) + 300}, "w" * 32, algorithm="HS256"),
    ],
)
def test_invalid_token_is_401(client, token):
    resp = client.get("/permissions/roles", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_expired_token_is_401(client):
    headers = {"Authorization": f"Bearer {_token('usr-admin', 'admin', ttl=-60)}"}
    assert client.get("/permissions/roles", headers=headers).status_code == 401


# ---- Verification ---------------------------------------------------------------------


def test_verify_permission(client):
    headers = _auth("usr-vendedor", "vendedor")

    resp = client.post(
        "/permissions/verify-permission",
        json={"userId": "usr-vendedor", "view": "leads", "permission": "delete"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json() == {"granted": False, "message": "Access denied"}

    resp = client.post(
        "/permissions/verify-permission",
        json={"userId": "usr-vendedor", "view": "leads", "permission": "create"},
        headers=headers,
    )
    assert resp.json() == {"granted": True, "message": "Access granted"}


def test_verify_view_and_route(client):
    headers = _auth("usr-vendedor", "vendedor")

    view = client.post("/permissions/verify-view", json={"userId": "usr-vendedor", "view": "usuarios"}, headers=headers)
    assert view.json()["granted"] is False

    route = client.post(
        "/permissions/verify-route", json={"userId": "usr-admin", "route": "/companias/123/editar"}, headers=headers
    )
    assert route.json()["granted"] is True

    route = client.post(
        "/permissions/verify-route",
        json={"userId": "usr-admin", "route": "/companias/123/456/editar"},
        headers=headers,
    )
    assert route.json()["granted"] is False


def test_verify_unknown_user_is_denied(client):
    resp = client.post(
        "/permissions/verify-permission",
        json={"userId": "nobody", "view": "leads", "permission": "read"},
        headers=_auth(),
    )
    assert resp.json()["granted"] is False


def test_verify_permission_batch(client):
    queries = [
        {"userId": "usr-vendedor", "view": "leads", "permission": "delete"},
        {"userId": "usr-admin", "view": "leads", "permission": "delete"},
        {"userId": "usr-broker", "view": "vendedores", "permission": "create"},
    ]

    resp = client.post("/permissions/verify-permission-batch", json={"queries": queries}, headers=_auth())

    assert resp.status_code == 200
    assert resp.json() == [{"granted": False}, {"granted": True}, {"granted": True}]

    empty = client.post("/permissions/verify-permission-batch", json={"queries": []}, headers=_auth())
    assert empty.json() == []


def test_request_body_is_validated(client):
    resp = client.post("/permissions/verify-view", json={"view": "leads"}, headers=_auth())
    assert resp.status_code == 422


# ---- Catalogue ------------------------------------------------------------------------


def test_list_roles_views_permissions(client):
    roles = client.get("/permissions/roles", headers=_auth()).json()
    assert roles["total"] == 3
    assert {"id", "name", "accessLevel", "isActive", "createdAt"} <= set(roles["roles"][0])

    views = client.get("/permissions/views", headers=_auth()).json()
    assert views["total"] == len(views["views"])
    assert "routePattern" in views["views"][0]

    permissions = client.get("/permissions/permissions", headers=_auth()).json()
    assert [p["name"] for p in permissions["permissions"]] == ["create", "read", "update", "delete", "export"]


def test_get_view(client):
    _, views = _ids(client)

    resp = client.get(f"/permissions/views/{views['leads']}", headers=_auth())
    assert resp.json()["name"] == "leads"

    assert client.get("/permissions/views/99999", headers=_auth()).status_code == 404


def test_views_for_role(client):
    roles, _ = _ids(client)

    resp = client.get(f"/permissions/roles/{roles['vendedor']}/views", headers=_auth("usr-vendedor", "vendedor"))

    assert resp.status_code == 200
    assert "usuarios" not in {v["name"] for v in resp.json()}
    assert "leads" in {v["name"] for v in resp.json()}


def test_admin_only_reads(client):
    roles, _ = _ids(client)

    assert client.get("/permissions/statistics", headers=_auth("usr-vendedor", "vendedor")).status_code == 403

    stats = client.get("/permissions/statistics", headers=_auth())
    assert stats.status_code == 200
    assert stats.json()["totalRoles"] == 3

    detail = client.get(f"/permissions/roles/{roles['vendedor']}/permissions", headers=_auth())
    assert detail.status_code == 200
    assert set(detail.json()) == {"views", "permissions"}


# ---- Administration -------------------------------------------------------------------


def test_assign_and_unassign(client):
    roles, views = _ids(client)
    assign_url = f"/permissions/roles/{roles['vendedor']}/views/{views['usuarios']}/assign"
    unassign_url = f"/permissions/roles/{roles['vendedor']}/views/{views['usuarios']}/unassign"
    verify = {"userId": "usr-vendedor", "view": "usuarios"}

    resp = client.post(assign_url, headers=_auth())
    assert resp.status_code == 200
    assert resp.json() == {"message": "View 'usuarios' assigned to role 'vendedor'"}
    assert client.post("/permissions/verify-view", json=verify, headers=_auth()).json()["granted"] is True

    again = client.post(assign_url, headers=_auth())
    assert again.status_code == 409
    assert "already assigned" in again.json()["message"]

    assert client.delete(unassign_url, headers=_auth()).status_code == 200
    assert client.post("/permissions/verify-view", json=verify, headers=_auth()).json()["granted"] is False

    missing = client.delete(unassign_url, headers=_auth())
    assert missing.status_code == 404
    assert "not assigned" in missing.json()["message"]


def test_assign_unknown_role(client):
    _, views = _ids(client)

    resp = client.post(f"/permissions/roles/999/views/{views['usuarios']}/assign", headers=_auth())

    assert resp.status_code == 404
    assert resp.json() == {"message": "Role 999 not found"}


def test_assign_requires_admin_permission(client):
    roles, views = _ids(client)

    resp = client.post(
        f"/permissions/roles/{roles['vendedor']}/views/{views['usuarios']}/assign",
        headers=_auth("usr-vendedor", "vendedor"),
    )

    assert resp.status_code == 403


# ---- Navigation -----------------------------------------------------------------------


def _titles(items):
    return [(item["title"], _titles(item["items"]) if item["items"] else None) for item in items]


def test_navigation_for_vendedor(client):
    resp = client.get("/navigation", headers=_auth("usr-vendedor", "vendedor"))

    assert resp.status_code == 200
    body = resp.json()
    assert body["role"] == "vendedor"
    assert body["defaultRoute"] == "/vendedor/dashboard"
    assert _titles(body["items"]) == [
        ("Dashboard", [("Panel", None)]),
        ("Gestión", [("Actividades", None), ("Leads", None), ("Clientes", None), ("Pólizas", None)]),
        ("IA", [("Generador de rutas", None)]),
    ]
    panel = body["items"][0]["items"][0]
    assert panel["requiredView"] == "dashboard"
    assert panel["url"] == "/dashboard"


def test_navigation_for_unknown_role_is_empty(client):
    resp = client.get("/navigation", headers=_auth("usr-vendedor", "gerente"))

    assert resp.status_code == 200
    assert resp.json() == {"role": "unknown", "defaultRoute": None, "items": []}


def test_navigation_requires_token(client):
    assert client.get("/navigation").status_code == 401
