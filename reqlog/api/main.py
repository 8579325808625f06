"""FastAPI application factory for the reqlog demo service.

Wires structured logging, the request ID middleware, the access log
middleware (with optional GeoIP enrichment) and the demo routes.

Run with::

    uvicorn reqlog.api.main:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI

from reqlog import __version__
from reqlog.config import Config
from reqlog.geo import GeoDatabase, open_geo_database
from reqlog.ids import MonotonicULIDProvider
from reqlog.middleware import RequestIDMiddleware, RequestLoggerMiddleware
from reqlog.utils.logging import configure_logging

from .routes import router

logger = structlog.get_logger(__name__)


def create_app(
    config: Optional[Config] = None,
    geo_db: Optional[GeoDatabase] = None,
    setup_logging: bool = True,
) -> FastAPI:
    """Build the application.

    Args:
        config: Settings; read from the environment when omitted.
        geo_db: GeoIP database to use instead of opening ``GEOIP_DB_PATH``.
            A database passed in is left open on shutdown.
        setup_logging: Configure structlog. Tests turn this off to keep
            log capture working.
    """
    config = config or Config()
    if setup_logging:
        configure_logging(
            json_logs=config.json_logs,
            log_level=config.log_level,
            access_log_level=config.access_log_level,
        )

    owned_db = None
    if geo_db is None:
        geo_db = owned_db = open_geo_database(config.geoip_db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "api_starting",
            version=__version__,
            environment=config.environment,
            geoip_enabled=geo_db is not None,
        )
        yield
        if owned_db is not None:
            owned_db.close()
        logger.info("api_shutdown_complete")

    app = FastAPI(
        title="reqlog demo",
        description="Request-scoped structured logging demo service",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.geo_db = geo_db

    # One provider per process, shared so both middlewares agree
    id_provider = MonotonicULIDProvider()

    # --- Middleware (last added is outermost) ---

    # 1. Access log, inside the request ID middleware so it reuses the same id
    app.add_middleware(
        RequestLoggerMiddleware,
        geo_db=geo_db,
        id_provider=id_provider,
        request_id_header=config.request_id_header,
        forwarded_for_header=config.forwarded_for_header,
    )

    # 2. Request ID tracking (outermost so every response gets the header)
    app.add_middleware(
        RequestIDMiddleware,
        id_provider=id_provider,
        header_name=config.request_id_header,
    )

    app.include_router(router, prefix="/api")
    return app
