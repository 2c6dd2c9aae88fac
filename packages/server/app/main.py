"""
Modstore API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.clients import close_clients, init_clients
from app.core.config import get_settings
from app.core.database import check_db
from app.core.errors import register_exception_handlers
from app.core.logging_config import configure_logging
from app.core.middleware import (
    CSRFMiddleware,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)
from app.core.redis import close_redis
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router
from app.api.v1.webhooks import router as webhooks_router

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Modstore",
        description="Publisher permissions and modpack access control.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    register_exception_handlers(app)
    init_clients(app, settings)

    # Middleware (last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token", "X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware)

    # Auth routes
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])

    # Gateway callbacks
    app.include_router(webhooks_router, prefix="/webhooks", tags=["Webhooks"])

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        await check_db()
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("Modstore starting", debug=settings.debug)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Modstore shutting down")
        await close_clients(app)
        await close_redis()

    return app


app = create_app()
