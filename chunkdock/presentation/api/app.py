"""
ASGI application for the upload server.

``create_app`` wires CORS for browser uploads, request tracing, the
upload error mapping and the routers around an already configured
``ApplicationStartup``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ...application.startup import ApplicationStartup
from ...core.exceptions import UploadError
from ...infrastructure.config.models import ApplicationConfig
from .middleware import ErrorHandlerMiddleware, RequestTracingMiddleware
from .routers import health, upload

logger = logging.getLogger(__name__)

# Headers browsers send on upload requests; preflight must allow all of them
UPLOAD_HEADERS = [
    "Origin",
    "X-Requested-With",
    "Content-Type",
    "Accept",
    "X-File-Name",
    "X-Chunk-Index",
    "X-Total-Chunks",
    "X-File-Path",
    "Content-Disposition",
    "Content-Range",
    "X-File-Id",
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run components for the lifetime of the server; shutdown closes open uploads."""
    startup: ApplicationStartup = app.state.startup
    await startup.start_application()
    logger.info("Upload server ready")

    try:
        yield
    finally:
        logger.info("Upload server shutting down")
        await startup.stop_application()


def create_app(startup: ApplicationStartup) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        startup: Startup manager whose services are already configured;
            components are started by the lifespan, not here
    """
    config = startup.config

    app = FastAPI(
        title=config.name,
        version=config.version,
        description="Chunked file upload server",
        debug=config.debug,
        lifespan=lifespan
    )
    app.state.startup = startup
    app.state.config = config

    _configure_middleware(app, config)
    _register_routes(app)

    logger.debug(f"Application {config.name} v{config.version} assembled")
    return app


def _configure_middleware(app: FastAPI, config: ApplicationConfig) -> None:
    # Added last runs first: CORS answers preflights before tracing sees them
    app.add_middleware(RequestTracingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=UPLOAD_HEADERS,
    )


def _register_routes(app: FastAPI) -> None:
    app.add_exception_handler(UploadError, upload.upload_error_handler)

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(upload.router, tags=["upload"])

    @app.get("/", tags=["root"])
    async def root() -> Dict[str, Any]:
        return {
            "name": app.title,
            "version": app.version,
            "status": "running",
            "docs_url": "/docs",
            "health_url": "/health",
        }
