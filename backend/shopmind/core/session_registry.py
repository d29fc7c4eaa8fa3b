"""
Session Registry - one session context per signed-in user.

Holds the lifecycle manager of each user for the lifetime of the application;
created in the app lifespan and drained on shutdown.
"""

import logging
from typing import Callable, Dict, Optional, Union

from ..config import Settings
from ..models import IdentityToken, SessionKey
from ..storage import SessionStore
from ..sync import ClearHistoryPolicy, RemoteSessionClient, SyncedSessionManager
from .session_manager import SessionLifecycleManager

logger = logging.getLogger(__name__)

SessionContext = Union[SessionLifecycleManager, SyncedSessionManager]


class SessionRegistry:
    """
    Maps a user's email to their session context.

    With remote sync enabled each context is a SyncedSessionManager talking to
    the remote service with the user's own bearer token.
    """

    def __init__(
        self,
        store: SessionStore,
        config: Settings,
        client_factory: Optional[Callable[[Optional[str]], RemoteSessionClient]] = None,
    ):
        """
        Args:
            store: Shared durable session store
            config: Application settings
            client_factory: Builds a remote client from a bearer token; defaults
                to one pointed at ``config.remote_base_url``
        """
        self.store = store
        self.config = config
        self._client_factory = client_factory or self._default_client
        self._contexts: Dict[str, SessionContext] = {}

    def _default_client(self, token: Optional[str]) -> RemoteSessionClient:
        return RemoteSessionClient(
            base_url=self.config.remote_base_url,
            token=token,
            timeout=self.config.remote_timeout_seconds,
        )

    def get(self, token: IdentityToken) -> SessionContext:
        """Return (creating if needed) the session context for the caller."""
        user_id = str(token.identity.email)
        context = self._contexts.get(user_id)
        if context is not None:
            self._refresh(context, token)
            return context

        manager = SessionLifecycleManager(
            self.store, SessionKey(user_id=user_id, session_id=token.session_id)
        )
        if self.config.remote_sync_enabled:
            context = SyncedSessionManager(
                manager,
                self._client_factory(token.raw_token),
                clear_policy=ClearHistoryPolicy(self.config.clear_history_policy),
            )
        else:
            context = manager

        self._contexts[user_id] = context
        logger.debug(f"Session context created for {user_id} (remote={self.config.remote_sync_enabled})")
        return context

    @staticmethod
    def _refresh(context: SessionContext, token: IdentityToken) -> None:
        """Carry the latest bearer token and session id into a cached context."""
        if isinstance(context, SyncedSessionManager):
            if token.raw_token and token.raw_token != context.client.token:
                context.client.token = token.raw_token
            manager = context.manager
        else:
            manager = context

        if manager.retarget(token.session_id):
            logger.debug(f"Session context for {manager.key.user_id} retargeted to {token.session_id}")

    async def aclose(self) -> None:
        """Flush outstanding remote mirror writes."""
        for context in self._contexts.values():
            if isinstance(context, SyncedSessionManager):
                await context.drain()
        self._contexts.clear()
