"""Services module - analytics and export over stored sessions."""

from .analytics import AnalyticsEngine
from .export import ExportArtifact, ExportService

__all__ = ['AnalyticsEngine', 'ExportArtifact', 'ExportService']
