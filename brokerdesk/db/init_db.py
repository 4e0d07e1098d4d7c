from __future__ import annotations

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from brokerdesk.db.base import Base
from brokerdesk.models.authz import Permission, Role, RoleView, RoleViewPermission, User, View

# name -> route pattern
VIEWS: dict[str, str] = {
    "dashboard": "/dashboard",
    "leads": "/leads",
    "leads_detalle": "/leads/*",
    "leads_editar": "/leads/*/editar",
    "clientes": "/clientes",
    "clientes_detalle": "/clientes/*",
    "polizas": "/polizas",
    "siniestros": "/siniestros",
    "cotizaciones": "/cotizaciones",
    "actividades": "/actividades",
    "vendedores": "/brokers/vendedores",
    "usuarios": "/usuarios",
    "companias": "/companias",
    "companias_editar": "/companias/*/editar",
    "auditoria": "/auditoria",
    "permisos": "/permisos",
    "generador_rutas": "/generador-rutas",
}

PERMISSIONS = ("create", "read", "update", "delete", "export")

# role -> view -> granted permissions
GRANTS: dict[str, dict[str, tuple[str, ...]]] = {
    "admin": {view: PERMISSIONS for view in VIEWS},
    "broker": {
        "dashboard": ("read",),
        "leads": ("create", "read", "update"),
        "leads_detalle": ("read",),
        "clientes": ("create", "read", "update"),
        "clientes_detalle": ("read",),
        "polizas": ("read",),
        "actividades": ("create", "read", "update", "delete"),
        "vendedores": ("create", "read", "update"),
    },
    "vendedor": {
        "dashboard": ("read",),
        "leads": ("create", "read", "update"),
        "leads_detalle": ("read",),
        "leads_editar": ("update",),
        "clientes": ("create", "read", "update"),
        "clientes_detalle": ("read",),
        "polizas": ("read",),
        "actividades": ("create", "read", "update"),
        "generador_rutas": ("read",),
    },
}


def init_db(engine: Engine, session_factory: sessionmaker[Session]) -> None:
    """
    Create tables + seed a demo catalogue.

    Deterministic and small so the authorization behaviour can be tried without
    extra setup.
    """

    Base.metadata.create_all(bind=engine)

    with session_factory() as db:
        if _has_seed_data(db):
            return
        _seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Role.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    views = {name: View(name=name, route_pattern=pattern) for name, pattern in VIEWS.items()}
    permissions = {name: Permission(name=name) for name in PERMISSIONS}
    roles = {
        "admin": Role(name="admin", description="System administrator", access_level=3),
        "broker": Role(name="broker", description="Brokerage manager", access_level=2),
        "vendedor": Role(name="vendedor", description="Sales agent", access_level=1),
    }
    db.add_all([*views.values(), *permissions.values(), *roles.values()])
    db.flush()

    for role_name, view_grants in GRANTS.items():
        role = roles[role_name]
        for view_name, perm_names in view_grants.items():
            view = views[view_name]
            db.add(RoleView(role_id=role.id, view_id=view.id))
            for perm_name in perm_names:
                db.add(RoleViewPermission(role_id=role.id, view_id=view.id, permission_id=permissions[perm_name].id))

    db.add_all(
        [
            User(id="usr-admin", username="ana_admin", email="ana.admin@example.com", role_id=roles["admin"].id),
            User(id="usr-broker", username="bruno_broker", email="bruno.broker@example.com", role_id=roles["broker"].id),
            User(id="usr-vendedor", username="vera_vendedor", email="vera.vendedor@example.com", role_id=roles["vendedor"].id),
        ]
    )

    db.commit()
