"""
Analytics Engine - engagement and popularity statistics over stored sessions.

Reads only from the local SessionStore, so it works offline. Computation is
read-only and can be repeated any number of times.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..core.exceptions import MissingIdentityError
from ..models import (
    Analytics, CategoryCount, Identity, Session, TermCount, UserEngagement
)
from ..storage import SessionStore

logger = logging.getLogger(__name__)

TOP_SEARCH_TERMS = 10
MIN_TERM_LENGTH = 3


def tokenize_query(query: str) -> List[str]:
    """Lower-cased whitespace tokens longer than two characters."""
    return [word for word in query.lower().split() if len(word) >= MIN_TERM_LENGTH]


def _count(items: Iterable[str]) -> Dict[str, int]:
    # dict keeps first-seen order, which the stable sort below relies on for ties
    counts: Dict[str, int] = {}
    for item in items:
        counts[item] = counts.get(item, 0) + 1
    return counts


def _ranked(counts: Dict[str, int]) -> List[tuple]:
    return sorted(counts.items(), key=lambda pair: pair[1], reverse=True)


def popular_search_terms(sessions: List[Session], limit: int = TOP_SEARCH_TERMS) -> List[TermCount]:
    counts = _count(
        term
        for session in sessions
        for query in session.metadata.search_queries
        for term in tokenize_query(query)
    )
    return [TermCount(term=term, count=count) for term, count in _ranked(counts)[:limit]]


def popular_categories(sessions: List[Session]) -> List[CategoryCount]:
    counts = _count(
        category for session in sessions for category in session.metadata.categories
    )
    return [CategoryCount(category=category, count=count) for category, count in _ranked(counts)]


def average_session_length(sessions: List[Session]) -> float:
    """Mean duration in minutes of completed sessions; 0 when none completed."""
    durations = [
        (session.end_time - session.start_time).total_seconds() / 60
        for session in sessions
        if session.end_time is not None
    ]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


class AnalyticsEngine:
    """Computes Analytics from every session in the local store."""

    def __init__(self, store: SessionStore):
        self.store = store

    async def compute(self, identity: Optional[Identity]) -> Analytics:
        """
        Compute analytics over all stored sessions.

        Args:
            identity: Requesting user; required

        Returns:
            Analytics: Freshly computed statistics

        Raises:
            MissingIdentityError: If no user is known
        """
        if identity is None:
            raise MissingIdentityError("analytics")

        index = await self.store.list_index()
        sessions = await self.store.load_all()
        if len(sessions) != len(index):
            logger.warning(
                f"{len(index) - len(sessions)} indexed session(s) could not be loaded"
            )

        return self.summarize(sessions, total_sessions=len(index))

    @staticmethod
    def summarize(sessions: List[Session], total_sessions: Optional[int] = None) -> Analytics:
        """Pure fold of already loaded sessions into Analytics."""
        if total_sessions is None:
            total_sessions = len(sessions)

        total_messages = sum(session.metadata.message_count for session in sessions)
        total_interactions = sum(session.metadata.product_interactions for session in sessions)
        avg_length = average_session_length(sessions)

        return Analytics(
            total_sessions=total_sessions,
            total_messages=total_messages,
            average_session_length=avg_length,
            popular_search_terms=popular_search_terms(sessions),
            popular_categories=popular_categories(sessions),
            user_engagement=UserEngagement(
                average_messages_per_session=(
                    total_messages / total_sessions if total_sessions > 0 else 0.0
                ),
                average_session_duration=avg_length,
                product_click_rate=(
                    total_interactions / total_messages * 100 if total_messages > 0 else 0.0
                ),
            ),
        )
