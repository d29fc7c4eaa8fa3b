"""
Shared FastAPI dependencies.

Long-lived services are created once in the app lifespan and kept on
``app.state``; routes receive them through these functions.
"""

from fastapi import Request

from ..core.session_registry import SessionRegistry
from ..services import AnalyticsEngine, ExportService
from ..storage import SessionStore


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_analytics_engine(request: Request) -> AnalyticsEngine:
    return request.app.state.analytics_engine


def get_export_service(request: Request) -> ExportService:
    return request.app.state.export_service
