"""
DiaMate API - Main FastAPI Application
"""

import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager
from sqlalchemy import text

from .config import settings
from .api import chat_router, vision_router, entitlement_router, health_router
from .core.errors import register_error_handlers
from .core.logging_config import setup_logging
from .db import database, init_db
from .middleware import CORSHeadersMiddleware, RequestLoggingMiddleware

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)
    init_db()
    logger.info("Usage ledger ready")

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Chat provider: {(settings.chat_provider() or ('none',))[0]}")
    logger.info(f"Vision provider: {(settings.vision_provider() or ('none',))[0]}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Debug mode: {settings.debug}")
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="AI chat, meal photo analysis, subscription entitlements and health data backup for the DiaMate diabetes companion",
    lifespan=lifespan
)

register_error_handlers(app)

# Add request logging middleware (inside CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

# CORS is added last so it wraps every response, error envelopes included
app.add_middleware(CORSHeadersMiddleware, allow_origin=settings.cors_allow_origin)

# Include routers
app.include_router(chat_router)
app.include_router(vision_router)
app.include_router(entitlement_router)
app.include_router(health_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        with database.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "database": db_ok,
        "version": settings.app_version
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "diamate.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
