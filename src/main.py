"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import drinks, foods, health, images, uploads
from .config.settings import get_settings
from .core.storage.errors import NotInitialized
from .infrastructure.catalog.repository import InMemoryCatalogRepository
from .infrastructure.storage.client import create_storage_service

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Storage is initialized here, before the server accepts requests.
    If credentials are missing or the bucket is unreachable the
    exception propagates and the server does not start.
    """
    # Startup
    settings = get_settings()

    logger.info(
        "Chicken & Rice API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": settings.storage_mock_mode,
        }
    )

    invalid_fields = settings.validate_required_fields()
    if invalid_fields:
        logger.error(
            "Invalid configuration",
            extra={"invalid_fields": invalid_fields}
        )

    await app.state.storage.init()

    yield

    # Shutdown
    logger.info("Chicken & Rice API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application. Long-lived objects
    (storage context, catalog repositories) are built here without I/O
    and kept on app.state; the lifespan does the network work.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Backend for a food-ordering storefront.

        ## Features

        - Upload images and files to cloud object storage
        - Serve stored objects with long-lived cache headers
        - Resize and transcode images on the fly
        - Manage the food and drink catalog

        ## Media

        - `POST /api/upload` stores a file and returns its public path
        - `GET /uploads/{key}` streams the original bytes
        - `GET /img/{key}?w=640&q=75&fmt=auto` streams a resized image
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.storage = create_storage_service(settings)
    app.state.foods = InMemoryCatalogRepository("food")
    app.state.drinks = InMemoryCatalogRepository("drink")

    # CORS middleware
    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        uploads.router,
        prefix="/uploads",
        tags=["Media"],
    )

    app.include_router(
        images.router,
        prefix="/img",
        tags=["Media"],
    )

    app.include_router(
        uploads.upload_router,
        prefix="/api",
        tags=["Media"],
    )

    app.include_router(
        foods.router,
        prefix="/api/foods",
        tags=["Foods"],
    )

    app.include_router(
        drinks.router,
        prefix="/api/drinks",
        tags=["Drinks"],
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Chicken & Rice API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(NotInitialized)
    async def storage_not_ready_handler(request: Request, exc: NotInitialized):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "storage not ready"},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. The full error is
        logged server-side and the client gets a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
