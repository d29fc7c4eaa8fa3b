"""
Analytics Models - Derived engagement statistics and the export snapshot.
"""

from datetime import datetime, timezone
from typing import List
from pydantic import Field

from .session import CamelModel, Session


class TermCount(CamelModel):
    term: str
    count: int


class CategoryCount(CamelModel):
    category: str
    count: int


class UserEngagement(CamelModel):
    average_messages_per_session: float = 0.0
    average_session_duration: float = 0.0  # minutes
    product_click_rate: float = 0.0  # percent


class Analytics(CamelModel):
    """Statistics computed over every stored session."""
    total_sessions: int = 0
    total_messages: int = 0
    average_session_length: float = 0.0  # minutes, completed sessions only
    popular_search_terms: List[TermCount] = Field(default_factory=list)
    popular_categories: List[CategoryCount] = Field(default_factory=list)
    user_engagement: UserEngagement = Field(default_factory=UserEngagement)


class ExportSnapshot(CamelModel):
    """Downloadable dump of all sessions plus their analytics."""
    export_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    analytics: Analytics
    sessions: List[Session] = Field(default_factory=list)
