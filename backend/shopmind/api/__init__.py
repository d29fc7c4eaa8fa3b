"""API module."""

from .sessions import router as sessions_router
from .analytics import router as analytics_router

__all__ = ['sessions_router', 'analytics_router']
