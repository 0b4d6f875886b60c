"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config import get_settings
from shared.database import init_db
from .dependencies import get_container
from .errors import register_error_handlers
from .routes import health, users, permissions
from modules.memberships.routes import router as memberships_router
from modules.store.routes import products_router, purchases_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs startup and shutdown logic.
    """
    # Startup
    settings = get_settings()
    container = get_container()
    if settings.auto_create_schema:
        await init_db(container.engine)
        logger.info("Database schema ensured")
    logger.info("Starting %s on %s:%s", settings.app_name, settings.host, settings.port)
    yield
    # Shutdown
    await container.dispose()
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Role and membership authorization backend for the Orchard storefront",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    register_error_handlers(app)

    # Register routes
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(permissions.router, prefix="/api/permissions", tags=["permissions"])
    app.include_router(products_router, prefix="/api/products", tags=["products"])
    app.include_router(purchases_router, prefix="/api/purchases", tags=["purchases"])
    app.include_router(memberships_router, prefix="/api/memberships", tags=["memberships"])

    return app


# Application instance for uvicorn
app = create_app()
