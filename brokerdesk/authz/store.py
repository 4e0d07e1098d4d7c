"""
Authorization Store: canonical roles, views, permissions and their assignments.

``AuthorizationStore`` is the contract the evaluator consumes. Two
implementations exist:

- ``SqlAuthorizationStore`` (this module) answers from the database and holds
  the actual decision queries. The HTTP service runs on top of it.
- ``RemoteAuthorizationStore`` (``brokerdesk.authz.remote``) forwards the same
  calls to that HTTP service.

Both are synchronous; the evaluator offloads calls to a worker thread. Read
failures raise ``AuthzStoreError``, write failures raise ``AssignmentError``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import logging
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from brokerdesk.authz.errors import AssignmentError, AuthzStoreError
from brokerdesk.authz.route_matcher import compile_pattern
from brokerdesk.models.authz import Permission, Role, RoleView, RoleViewPermission, User, View
from brokerdesk.schemas.authz import PermissionOut, RoleOut, RolePermissionsOut, StatisticsOut, ViewOut

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionQuery:
    """One (user, view, permission) question inside a batch."""

    user_id: str
    view: str
    permission: str


class AuthorizationStore(Protocol):
    # Verification (read path)
    def verify_permission(self, user_id: str, view: str, permission: str) -> bool: ...

    def verify_view(self, user_id: str, view: str) -> bool: ...

    def verify_route(self, user_id: str, route: str) -> bool: ...

    def verify_permission_batch(self, queries: Sequence[PermissionQuery]) -> list[bool]: ...

    # Catalogue (read path)
    def list_roles(self) -> list[RoleOut]: ...

    def list_views(self) -> list[ViewOut]: ...

    def list_permissions(self) -> list[PermissionOut]: ...

    def get_view(self, view_id: int) -> ViewOut | None: ...

    def views_for_role(self, role_id: int) -> list[ViewOut]: ...

    def role_permissions(self, role_id: int) -> RolePermissionsOut: ...

    def statistics(self) -> StatisticsOut: ...

    # Administration (write path)
    def assign_view(self, role_id: int, view_id: int) -> str: ...

    def unassign_view(self, role_id: int, view_id: int) -> str: ...


SessionFactory = Callable[[], Session]


class SqlAuthorizationStore:
    """
    Database-backed store.

    Every call opens its own short-lived session from ``session_factory`` so
    calls can run on worker threads and always see the latest committed
    assignments.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    # ---- Role resolution ------------------------------------------------------------

    def _resolve_role(self, db: Session, user_id: str) -> Role | None:
        """Return the user's role, or None if the user or role is missing/inactive."""
        user = db.execute(
            select(User).where(User.id == user_id).options(selectinload(User.role))
        ).scalar_one_or_none()

        if user is None or not user.is_active:
            logger.debug("Authz: unknown or inactive user user_id=%s", user_id)
            return None
        role = user.role
        if role is None or not role.is_active:
            logger.debug("Authz: user has no active role user_id=%s", user_id)
            return None
        return role

    def _grants_for_role(self, db: Session, role_id: int) -> frozenset[tuple[str, str]]:
        """All active (view name, permission name) pairs granted to a role."""
        rows = db.execute(
            select(View.name, Permission.name)
            .select_from(RoleViewPermission)
            .join(View, RoleViewPermission.view_id == View.id)
            .join(Permission, RoleViewPermission.permission_id == Permission.id)
            .where(
                RoleViewPermission.role_id == role_id,
                View.is_active.is_(True),
                Permission.is_active.is_(True),
            )
        ).all()
        return frozenset((view_name, perm_name) for view_name, perm_name in rows)

    # ---- Verification ---------------------------------------------------------------

    def verify_view(self, user_id: str, view: str) -> bool:
        try:
            with self._session_factory() as db:
                role = self._resolve_role(db, user_id)
                if role is None:
                    return False
                row = db.execute(
                    select(RoleView.view_id)
                    .join(View, RoleView.view_id == View.id)
                    .where(
                        RoleView.role_id == role.id,
                        View.name == view,
                        View.is_active.is_(True),
                    )
                    .limit(1)
                ).first()
                return row is not None
        except SQLAlchemyError as exc:
            raise AuthzStoreError("view verification failed") from exc

    def verify_permission(self, user_id: str, view: str, permission: str) -> bool:
        try:
            with self._session_factory() as db:
                role = self._resolve_role(db, user_id)
                if role is None:
                    return False
                row = db.execute(
                    select(RoleViewPermission.role_id)
                    .join(View, RoleViewPermission.view_id == View.id)
                    .join(Permission, RoleViewPermission.permission_id == Permission.id)
                    .where(
                        RoleViewPermission.role_id == role.id,
                        View.name == view,
                        Permission.name == permission,
                        View.is_active.is_(True),
                        Permission.is_active.is_(True),
                    )
                    .limit(1)
                ).first()
                return row is not None
        except SQLAlchemyError as exc:
            raise AuthzStoreError("permission verification failed") from exc

    def verify_route(self, user_id: str, route: str) -> bool:
        try:
            with self._session_factory() as db:
                role = self._resolve_role(db, user_id)
                if role is None:
                    return False
                patterns = db.scalars(
                    select(View.route_pattern)
                    .join(RoleView, RoleView.view_id == View.id)
                    .where(RoleView.role_id == role.id, View.is_active.is_(True))
                ).all()
        except SQLAlchemyError as exc:
            raise AuthzStoreError("route verification failed") from exc

        for pattern in patterns:
            if compile_pattern(pattern).matches(route):
                logger.debug("Authz: route matched route=%s pattern=%s", route, pattern)
                return True
        return False

    def verify_permission_batch(self, queries: Sequence[PermissionQuery]) -> list[bool]:
        """
        Answer a batch with one grant lookup per distinct user.

        Output order and length always equal the input.
        """

        if not queries:
            return []

        try:
            with self._session_factory() as db:
                grants_by_user: dict[str, frozenset[tuple[str, str]]] = {}
                for user_id in {q.user_id for q in queries}:
                    role = self._resolve_role(db, user_id)
                    grants_by_user[user_id] = frozenset() if role is None else self._grants_for_role(db, role.id)
        except SQLAlchemyError as exc:
            raise AuthzStoreError("batch verification failed") from exc

        return [(q.view, q.permission) in grants_by_user[q.user_id] for q in queries]

    # ---- Catalogue ------------------------------------------------------------------

    def list_roles(self) -> list[RoleOut]:
        return self._read(lambda db: [RoleOut.model_validate(r) for r in db.scalars(select(Role).order_by(Role.id))])

    def list_views(self) -> list[ViewOut]:
        return self._read(lambda db: [ViewOut.model_validate(v) for v in db.scalars(select(View).order_by(View.id))])

    def list_permissions(self) -> list[PermissionOut]:
        return self._read(
            lambda db: [PermissionOut.model_validate(p) for p in db.scalars(select(Permission).order_by(Permission.id))]
        )

    def get_view(self, view_id: int) -> ViewOut | None:
        def _get(db: Session) -> ViewOut | None:
            view = db.get(View, view_id)
            return ViewOut.model_validate(view) if view is not None else None

        return self._read(_get)

    def views_for_role(self, role_id: int) -> list[ViewOut]:
        return self._read(
            lambda db: [
                ViewOut.model_validate(v)
                for v in db.scalars(
                    select(View)
                    .join(RoleView, RoleView.view_id == View.id)
                    .where(RoleView.role_id == role_id)
                    .order_by(View.id)
                )
            ]
        )

    def role_permissions(self, role_id: int) -> RolePermissionsOut:
        def _collect(db: Session) -> RolePermissionsOut:
            views = [
                ViewOut.model_validate(v)
                for v in db.scalars(
                    select(View)
                    .join(RoleView, RoleView.view_id == View.id)
                    .where(RoleView.role_id == role_id)
                    .order_by(View.id)
                )
            ]
            rows = db.execute(
                select(RoleViewPermission.view_id, Permission)
                .join(Permission, RoleViewPermission.permission_id == Permission.id)
                .where(RoleViewPermission.role_id == role_id)
                .order_by(RoleViewPermission.view_id, Permission.id)
            ).all()
            permissions: dict[str, list[PermissionOut]] = {}
            for view_id, perm in rows:
                permissions.setdefault(str(view_id), []).append(PermissionOut.model_validate(perm))
            return RolePermissionsOut(views=views, permissions=permissions)

        return self._read(_collect)

    def statistics(self) -> StatisticsOut:
        def _count(db: Session) -> StatisticsOut:
            assignments = db.scalar(select(func.count()).select_from(RoleView)) or 0
            assignments += db.scalar(select(func.count()).select_from(RoleViewPermission)) or 0
            return StatisticsOut(
                total_views=db.scalar(select(func.count()).select_from(View)) or 0,
                total_permissions=db.scalar(select(func.count()).select_from(Permission)) or 0,
                total_roles=db.scalar(select(func.count()).select_from(Role)) or 0,
                total_assignments=assignments,
            )

        return self._read(_count)

    def _read(self, fn: Callable[[Session], object]):
        try:
            with self._session_factory() as db:
                return fn(db)
        except SQLAlchemyError as exc:
            raise AuthzStoreError("catalogue read failed") from exc

    # ---- Administration -------------------------------------------------------------

    def assign_view(self, role_id: int, view_id: int) -> str:
        try:
            with self._session_factory() as db:
                role, view = self._role_and_view(db, role_id, view_id)
                if db.get(RoleView, (role_id, view_id)) is not None:
                    raise AssignmentError(f"View {view.name!r} is already assigned to role {role.name!r}", 409)
                db.add(RoleView(role_id=role_id, view_id=view_id))
                db.commit()
                logger.info("Authz: assigned view=%s to role=%s", view.name, role.name)
                return f"View {view.name!r} assigned to role {role.name!r}"
        except SQLAlchemyError as exc:
            raise AssignmentError("Could not assign view to role", 500) from exc

    def unassign_view(self, role_id: int, view_id: int) -> str:
        try:
            with self._session_factory() as db:
                role, view = self._role_and_view(db, role_id, view_id)
                assignment = db.get(RoleView, (role_id, view_id))
                if assignment is None:
                    raise AssignmentError(f"View {view.name!r} is not assigned to role {role.name!r}", 404)
                db.delete(assignment)
                db.commit()
                logger.info("Authz: unassigned view=%s from role=%s", view.name, role.name)
                return f"View {view.name!r} unassigned from role {role.name!r}"
        except SQLAlchemyError as exc:
            raise AssignmentError("Could not unassign view from role", 500) from exc

    def _role_and_view(self, db: Session, role_id: int, view_id: int) -> tuple[Role, View]:
        role = db.get(Role, role_id)
        if role is None:
            raise AssignmentError(f"Role {role_id} not found", 404)
        view = db.get(View, view_id)
        if view is None:
            raise AssignmentError(f"View {view_id} not found", 404)
        return role, view
