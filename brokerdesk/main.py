from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from brokerdesk.authz.errors import AssignmentError, AuthzStoreError
from brokerdesk.authz.evaluator import PermissionEvaluator
from brokerdesk.authz.navigation import load_navigation_config
from brokerdesk.authz.store import SqlAuthorizationStore
from brokerdesk.db.init_db import init_db
from brokerdesk.db.session import make_engine, make_session_factory
from brokerdesk.identity import IdentityConfig, IdentityDecoder
from brokerdesk.logging_config import configure_app_logging
from brokerdesk.routers import health, navigation, permissions
from brokerdesk.security.dependencies import enforce_security
from brokerdesk.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, identity_config: IdentityConfig | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or get_settings()
        configure_app_logging(cfg.log_level)
        logger.info("App startup beginning")

        app.state.navigation = load_navigation_config(cfg.resolved_navigation_config_path())
        logger.info("Loaded navigation config: %s", cfg.resolved_navigation_config_path())

        engine = make_engine(cfg.resolved_db_url())
        session_factory = make_session_factory(engine)
        init_db(engine, session_factory)
        logger.info("Database initialized (tables ensured + seed if needed)")

        app.state.authz_store = SqlAuthorizationStore(session_factory)
        # No decision cache server-side: every verify call reads committed grants.
        app.state.evaluator = PermissionEvaluator(app.state.authz_store, timeout_seconds=cfg.decision_timeout_seconds)
        app.state.identity_decoder = IdentityDecoder(identity_config or IdentityConfig.from_environ())

        yield

        engine.dispose()

    # Global dependency: every route is authenticated unless marked @public().
    app = FastAPI(title="brokerdesk", dependencies=[Depends(enforce_security)], lifespan=lifespan)

    @app.exception_handler(AuthzStoreError)
    async def _store_unavailable(request: Request, exc: AuthzStoreError) -> JSONResponse:
        logger.warning("Authorization store unavailable path=%s error=%s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"message": "Authorization store unavailable"},
        )

    @app.exception_handler(AssignmentError)
    async def _assignment_failed(request: Request, exc: AssignmentError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code or status.HTTP_400_BAD_REQUEST,
            content={"message": exc.message},
        )

    app.include_router(health.router)
    app.include_router(permissions.router)
    app.include_router(navigation.router)

    return app


app = create_app()
