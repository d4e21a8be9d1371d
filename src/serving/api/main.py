"""
FastAPI Application Factory

Creates and configures the retail intelligence API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import structlog

from src.config import get_settings
from src.config.logging import configure_logging
from src.database.connection import close_database, init_database
from src.serving.api.errors import register_error_handlers
from src.serving.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from src.serving.api.routes import (
    comparison_router,
    health_router,
    locations_router,
    rankings_router,
    webhook_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and open the database pool for the app's lifetime."""
    configure_logging()
    logger.info("Starting Retail Intelligence API")
    
    await init_database()
    
    yield
    
    logger.info("Shutting down...")
    await close_database()


def create_api_app() -> FastAPI:
    """
    Create and configure FastAPI application.
    
    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()
    
    app = FastAPI(
        title="Retail Intelligence API",
        description="Store rankings, year-over-year product comparison and order ingestion",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    
    register_error_handlers(app)
    
    app.include_router(health_router, prefix="/api", tags=["Health"])
    app.include_router(rankings_router, prefix="/api", tags=["Rankings"])
    app.include_router(comparison_router, prefix="/api", tags=["Last-Year Comparison"])
    app.include_router(locations_router, prefix="/api", tags=["Locations"])
    app.include_router(webhook_router, prefix="/api", tags=["Webhooks"])
    
    @app.get("/api/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Retail Intelligence API",
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }
    
    return app
