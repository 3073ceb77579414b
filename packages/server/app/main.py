"""
Issue Tracker API Server

Entry point for the FastAPI application.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.cache import ProjectMetadataCache
from app.core.config import Settings, get_settings
from app.core.database import dispose_engine
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import (
    CSRFMiddleware,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)
from app.core.redis import close_redis, redis_is_healthy
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("issuetrack.starting")
    yield
    log.info("issuetrack.shutting_down")
    await close_redis()
    await dispose_engine()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Issue Tracker",
        description="Multi-tenant issue tracking: organizations, projects, tickets, sprints.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.project_cache = ProjectMetadataCache(
        ttl_seconds=settings.project_cache_ttl_seconds,
        maxsize=settings.project_cache_maxsize,
    )

    register_exception_handlers(app)

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

    # Auth routes (not org-scoped)
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: Redis must answer for session revocation to work."""
        redis_ok = await redis_is_healthy()
        return {"status": "ready" if redis_ok else "degraded", "redis": redis_ok}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(app, host=_settings.host, port=_settings.port, log_level=_settings.log_level.lower())
