"""
ShopMind Sessions - Main FastAPI Application
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import sessions_router, analytics_router
from .core.logging_config import setup_logging
from .core.session_registry import SessionRegistry
from .middleware import RequestLoggingMiddleware
from .services import AnalyticsEngine, ExportService
from .storage import LocalStorage, SessionStore

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire storage and session services for the lifetime of the app."""
    setup_logging(settings)

    storage = LocalStorage(settings.local_storage_path)
    session_store = SessionStore(storage)
    analytics_engine = AnalyticsEngine(session_store)

    app.state.session_store = session_store
    app.state.analytics_engine = analytics_engine
    app.state.export_service = ExportService(session_store, storage, analytics_engine)
    app.state.registry = SessionRegistry(session_store, settings)

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(
        f"Remote sync: {'enabled -> ' + settings.remote_base_url if settings.remote_sync_enabled else 'disabled'}"
    )
    yield
    # Flush pending remote mirror writes before exiting
    await app.state.registry.aclose()
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Chat session tracking, sync and analytics for the ShopMind shopping assistant",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

app.include_router(sessions_router)
app.include_router(analytics_router)


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
    return {
        "status": "healthy",
        "remote_sync": settings.remote_sync_enabled,
        "version": settings.app_version
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "shopmind.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
