"""Sync module - best-effort mirroring of sessions to a remote service."""

from .remote_client import RemoteSessionClient, RemoteSessionCreated, RemoteSessionPayload
from .sync_adapter import ClearHistoryPolicy, SyncedSessionManager

__all__ = [
    'RemoteSessionClient', 'RemoteSessionCreated', 'RemoteSessionPayload',
    'ClearHistoryPolicy', 'SyncedSessionManager'
]
