"""
HTTP client for the authorization service.

Implements the ``AuthorizationStore`` contract by calling the ``/permissions``
endpoints of the brokerdesk API. Read calls raise ``AuthzStoreError`` on any
transport or protocol problem; the evaluator turns those into denials. Write
calls (assign/unassign) raise ``AssignmentError`` carrying the server's
message so the administrator sees it.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
import threading
from typing import Any

from pydantic import ValidationError
import requests

from brokerdesk.authz.errors import AssignmentError, AuthzStoreError
from brokerdesk.authz.store import PermissionQuery
from brokerdesk.schemas.authz import (
    BatchItemOut,
    MessageOut,
    PermissionList,
    RoleList,
    RolePermissionsOut,
    StatisticsOut,
    VerifyOut,
    ViewList,
    ViewOut,
)
from brokerdesk.settings import Settings

logger = logging.getLogger(__name__)

API_PREFIX = "/permissions"


class RemoteAuthorizationStore:
    """
    ``AuthorizationStore`` backed by the remote authorization API.

    ``token`` is sent as ``Authorization: Bearer <token>``; it is never logged.

    Checks run concurrently on worker threads, so each thread gets its own
    ``requests.Session`` unless one is injected.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout_seconds: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + API_PREFIX
        self._timeout = timeout_seconds
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._injected_session = session
        if session is not None:
            session.headers.update(self._headers)
        self._local = threading.local()

    @classmethod
    def from_settings(cls, settings: Settings, token: str | None = None) -> RemoteAuthorizationStore:
        return cls(settings.authz_base_url, token=token, timeout_seconds=settings.authz_timeout_seconds)

    # ---- Transport ------------------------------------------------------------------

    @property
    def _session(self) -> requests.Session:
        if self._injected_session is not None:
            return self._injected_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._headers)
            self._local.session = session
        return session

    def _read(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = self._session.request(method, url, json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.warning("Authz service request failed path=%s error=%s", path, type(exc).__name__)
            raise AuthzStoreError(f"request to {path} failed") from exc

        if resp.status_code != 200:
            logger.warning("Authz service returned status=%s path=%s", resp.status_code, path)
            raise AuthzStoreError(f"{path} returned status {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise AuthzStoreError(f"{path} returned invalid JSON") from exc

    def _write(self, method: str, path: str, fallback_message: str) -> str:
        url = f"{self._base_url}{path}"
        try:
            resp = self._session.request(method, url, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.warning("Authz service request failed path=%s error=%s", path, type(exc).__name__)
            raise AssignmentError("Could not reach the authorization service") from exc

        body = _json_or_empty(resp)
        if resp.status_code != 200:
            message = body.get("message") or body.get("detail") or fallback_message
            raise AssignmentError(str(message), resp.status_code)
        try:
            return MessageOut.model_validate(body).message
        except ValidationError as exc:
            raise AssignmentError(fallback_message, resp.status_code) from exc

    # ---- Verification ---------------------------------------------------------------

    def verify_permission(self, user_id: str, view: str, permission: str) -> bool:
        body = self._read("POST", "/verify-permission", {"userId": user_id, "view": view, "permission": permission})
        return _parse(VerifyOut, body, "/verify-permission").granted

    def verify_view(self, user_id: str, view: str) -> bool:
        body = self._read("POST", "/verify-view", {"userId": user_id, "view": view})
        return _parse(VerifyOut, body, "/verify-view").granted

    def verify_route(self, user_id: str, route: str) -> bool:
        body = self._read("POST", "/verify-route", {"userId": user_id, "route": route})
        return _parse(VerifyOut, body, "/verify-route").granted

    def verify_permission_batch(self, queries: Sequence[PermissionQuery]) -> list[bool]:
        if not queries:
            return []
        payload = {
            "queries": [{"userId": q.user_id, "view": q.view, "permission": q.permission} for q in queries]
        }
        body = self._read("POST", "/verify-permission-batch", payload)
        if not isinstance(body, list):
            raise AuthzStoreError("/verify-permission-batch returned a non-list body")
        return [_parse(BatchItemOut, item, "/verify-permission-batch").granted for item in body]

    # ---- Catalogue ------------------------------------------------------------------

    def list_roles(self):
        return _parse(RoleList, self._read("GET", "/roles"), "/roles").roles

    def list_views(self):
        return _parse(ViewList, self._read("GET", "/views"), "/views").views

    def list_permissions(self):
        return _parse(PermissionList, self._read("GET", "/permissions"), "/permissions").permissions

    def get_view(self, view_id: int) -> ViewOut | None:
        url = f"{self._base_url}/views/{view_id}"
        try:
            resp = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise AuthzStoreError("request to /views/{id} failed") from exc
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise AuthzStoreError(f"/views/{{id}} returned status {resp.status_code}")
        return _parse(ViewOut, _json_or_empty(resp), "/views/{id}")

    def views_for_role(self, role_id: int) -> list[ViewOut]:
        body = self._read("GET", f"/roles/{role_id}/views")
        if not isinstance(body, list):
            raise AuthzStoreError("/roles/{id}/views returned a non-list body")
        return [_parse(ViewOut, item, "/roles/{id}/views") for item in body]

    def role_permissions(self, role_id: int) -> RolePermissionsOut:
        return _parse(RolePermissionsOut, self._read("GET", f"/roles/{role_id}/permissions"), "/roles/{id}/permissions")

    def statistics(self) -> StatisticsOut:
        return _parse(StatisticsOut, self._read("GET", "/statistics"), "/statistics")

    # ---- Administration -------------------------------------------------------------

    def assign_view(self, role_id: int, view_id: int) -> str:
        return self._write("POST", f"/roles/{role_id}/views/{view_id}/assign", "Could not assign view to role")

    def unassign_view(self, role_id: int, view_id: int) -> str:
        return self._write("DELETE", f"/roles/{role_id}/views/{view_id}/unassign", "Could not unassign view from role")


def _parse(model, body: Any, path: str):
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise AuthzStoreError(f"{path} returned an unexpected body") from exc


def _json_or_empty(resp: requests.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
