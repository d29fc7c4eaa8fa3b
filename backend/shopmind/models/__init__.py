"""Models module."""

from .user import Identity, IdentityToken
from .session import (
    Product, Message, MessageCreate, SessionMetadata, Session, SessionIndexEntry, SessionKey
)
from .analytics import TermCount, CategoryCount, UserEngagement, Analytics, ExportSnapshot

__all__ = [
    'Identity', 'IdentityToken',
    'Product', 'Message', 'MessageCreate', 'SessionMetadata', 'Session', 'SessionIndexEntry',
    'SessionKey',
    'TermCount', 'CategoryCount', 'UserEngagement', 'Analytics', 'ExportSnapshot'
]
