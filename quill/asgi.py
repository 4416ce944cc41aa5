"""ASGI application factory for Quill.

The revision capability probe, the per-post lock registry and a session
maker for self-contained units of work are created here and published on
``app.state`` for the controllers.
"""

import hashlib
import logging
from typing import Any

from advanced_alchemy.config import EngineConfig
from advanced_alchemy.extensions.litestar import AsyncSessionConfig, SQLAlchemyPlugin
from litestar import Litestar
from litestar.middleware.session.client_side import CookieBackendConfig

from quill.config import Settings, get_settings
from quill.controllers import RevisionController
from quill.db.base import Base
from quill.db.services.revision_capabilities import RevisionCapabilityProbe
from quill.db.session import SafeSQLAlchemyAsyncConfig
from quill.lib import observability
from quill.lib.exceptions import EXCEPTION_HANDLERS
from quill.lib.locks import record_locks

logger = logging.getLogger(__name__)


def create_db_config(settings: Settings) -> SafeSQLAlchemyAsyncConfig:
    """Build the SQLAlchemy config from database settings."""
    if "sqlite" in settings.db.url:
        engine_config = EngineConfig(echo=settings.db.echo)
    else:
        engine_kwargs: dict[str, Any] = dict(
            pool_size=settings.db.pool_size,
            max_overflow=settings.db.pool_overflow,
            pool_timeout=settings.db.pool_timeout,
            pool_pre_ping=settings.db.pool_pre_ping,
            echo=settings.db.echo,
        )
        engine_config = EngineConfig(**engine_kwargs)

    return SafeSQLAlchemyAsyncConfig(
        connection_string=settings.db.url,
        metadata=Base.metadata,
        create_all=False,
        session_config=AsyncSessionConfig(expire_on_commit=False),
        engine_config=engine_config,
    )


def create_session_config(secret_key: str, secure: bool = False) -> CookieBackendConfig:
    """Create a cookie-backed session config carrying the signed-in user id."""
    return CookieBackendConfig(
        secret=hashlib.sha256(secret_key.encode()).digest(),
        key="session",
        httponly=True,
        secure=secure,
        samesite="lax",
    )


def create_app(settings: Settings | None = None) -> Litestar:
    """Create the Litestar application."""
    settings = settings or get_settings()

    observability.configure(settings)

    db_config = create_db_config(settings)

    capability_probe = RevisionCapabilityProbe(db_config.get_engine())

    async def on_startup(_app: Litestar) -> None:
        """Trace SQL and resolve revision capabilities before the first request needs them."""
        observability.instrument_sqlalchemy(db_config.get_engine())

        if settings.revisions.probe_on_startup:
            await capability_probe.get_capabilities()

    middleware = []
    if settings.secret_key:
        middleware.append(create_session_config(settings.secret_key, secure=not settings.debug).middleware)
    else:
        logger.warning("No secret_key configured; the revision API will reject every request")

    app = Litestar(
        on_startup=[on_startup],
        route_handlers=[RevisionController],
        plugins=[SQLAlchemyPlugin(config=db_config)],
        middleware=middleware,
        exception_handlers=EXCEPTION_HANDLERS,
        debug=settings.debug,
    )
    app.state.capability_probe = capability_probe
    app.state.record_locks = record_locks
    app.state.session_maker = db_config.create_session_maker()

    return app


app = observability.instrument_app(create_app())
