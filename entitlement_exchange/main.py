"""Entitlement Exchange: FastAPI application entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# configure_structlog MUST run before other app imports (structlog caches the
# processor chain on first use).
from entitlement_exchange.core.logging import configure_structlog
from entitlement_exchange.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else _early_settings.log_level,
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from entitlement_exchange.api.routes import api_router
from entitlement_exchange.api.routes.exchange import get_catalog, get_exchange_service
from entitlement_exchange.core.config import get_settings
from entitlement_exchange.core.exceptions import StorageUnavailableError
from entitlement_exchange.db import close_db, close_redis, init_db, init_redis
from entitlement_exchange.db.seed import seed_plan_tiers
from entitlement_exchange.middleware.correlation import (
    get_correlation_id,
    setup_correlation_middleware,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    # Fail fast on bad rates before serving traffic
    catalog = get_catalog()
    logger.info(
        "exchange_catalog_loaded",
        funding_strategy=catalog.funding_strategy.value,
        epsilon=catalog.epsilon,
    )

    await init_db()
    logger.info("db_initialized")

    await init_redis()
    logger.info("redis_initialized")

    await seed_plan_tiers()
    logger.info("plan_tiers_seeded")

    purged = await get_exchange_service().purge_expired()
    logger.info("expired_overrides_purged", count=purged)

    yield

    logger.info("shutdown_begin")
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Global exception handler for HTTPException with debug_id tracking."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        detail=exc.detail,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
    )


async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError) -> JSONResponse:
    """Storage outages are transport failures, reported as 503 and never as rejections."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "storage_unavailable",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return JSONResponse(
        status_code=503,
        content={"detail": "Storage temporarily unavailable", "debug_id": debug_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors; returns a generic 500."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(StorageUnavailableError)(storage_unavailable_handler)
    app.exception_handler(Exception)(generic_exception_handler)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Trade unused plan entitlements between seats, projects and storage",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, *settings.cors_allowed_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "entitlement_exchange.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
