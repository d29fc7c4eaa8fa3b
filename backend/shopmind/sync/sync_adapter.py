"""
Synced Session Manager - mirrors lifecycle operations to the remote service.

Local state is always updated first and is what callers get back. Remote
writes run afterwards as background tasks; their failures are logged and
swallowed, so the remote copy is a best-effort mirror that may miss writes
made while offline.
"""

import asyncio
import logging
from enum import Enum
from typing import Coroutine, Optional, Set

from ..core.exceptions import RemoteSessionNotFoundError, RemoteSyncError
from ..core.logging_config import SessionLoggerAdapter
from ..core.session_manager import SessionLifecycleManager, SessionState, is_provisional_id
from ..models import Message, Session, SessionKey
from .remote_client import RemoteSessionClient

logger = logging.getLogger(__name__)


class ClearHistoryPolicy(str, Enum):
    """How clear_history behaves when a remote backend is configured."""
    RESET = "reset"        # truncate the current session in place
    RECREATE = "recreate"  # end the current session and start a new one


class SyncedSessionManager:
    """
    Wraps a SessionLifecycleManager with best-effort remote mirroring.
    Exposes the same operations as the wrapped manager.
    """

    def __init__(
        self,
        manager: SessionLifecycleManager,
        client: RemoteSessionClient,
        clear_policy: ClearHistoryPolicy = ClearHistoryPolicy.RESET,
    ):
        """
        Args:
            manager: Local lifecycle manager (source of truth)
            client: Remote session service client
            clear_policy: Behavior of clear_history
        """
        self.manager = manager
        self.client = client
        self.clear_policy = ClearHistoryPolicy(clear_policy)
        # Sessions the remote service is known to hold; others are local-only
        self._remote_session_ids: Set[str] = set()
        self._pending: Set[asyncio.Task] = set()
        # Keeps mirror writes in the order they were scheduled
        self._mirror_lock = asyncio.Lock()
        self.logger = SessionLoggerAdapter(logger, {"user_id": manager.key.user_id})

    @property
    def current(self) -> Optional[Session]:
        return self.manager.current

    @property
    def state(self) -> SessionState:
        return self.manager.state

    @property
    def key(self) -> SessionKey:
        return self.manager.key

    def is_remote(self, session_id: Optional[str] = None) -> bool:
        """Whether the given (or current) session is known to the remote service."""
        if session_id is None:
            session_id = self.current.session_id if self.current else None
        return session_id is not None and session_id in self._remote_session_ids

    @property
    def pending_tasks(self) -> int:
        return len(self._pending)

    async def restore_or_create(self) -> Session:
        """
        Resume the keyed session, preferring the remote copy so a session
        started elsewhere is picked up; fall back to local restore, then create.
        """
        if self.manager.current is not None:
            return self.manager.current

        session_id = self.manager.key.session_id
        if session_id:
            # Provisional ids were never issued by the server
            remote_known = not is_provisional_id(session_id)
            try:
                remote = await self.client.fetch_session(session_id)
            except RemoteSessionNotFoundError:
                self.logger.info(f"Session {session_id} not found remotely, falling back to local")
                remote, remote_known = None, False
            except RemoteSyncError as e:
                self.logger.warning(f"Could not fetch session {session_id}, using local state: {e}")
                remote = None

            if remote is not None and remote.user_id == self.manager.key.user_id:
                adopted = await self.manager.adopt(remote)
                if adopted is not None:
                    self._remote_session_ids.add(adopted.session_id)
                    return adopted

            restored = await self.manager.restore()
            if restored is not None:
                if remote_known:
                    self._remote_session_ids.add(restored.session_id)
                return restored

        session = await self.manager.create()
        await self._create_remote()
        return self.manager.current or session

    async def _create_remote(self) -> bool:
        """Register the current session remotely and adopt the server id."""
        session = self.manager.current
        if session is None:
            return False

        try:
            created = await self.client.create_session(session.user_id)
        except RemoteSyncError as e:
            self.logger.warning(
                f"Remote session creation failed, continuing local-only: {e}",
                extra={"extra_fields": {"session_id": session.session_id}}
            )
            return False

        reassigned = await self.manager.reassign_id(created.session_id, created.start_time)
        if reassigned is None:
            return False
        self._remote_session_ids.add(reassigned.session_id)
        return True

    async def ensure_remote(self) -> bool:
        """
        Retry registering a local-only session with the remote service and
        replay its messages there. Nothing retries automatically; callers
        decide when to try again.

        Returns:
            bool: True if the current session is now known remotely
        """
        if self.current is None:
            return False
        if self.is_remote():
            return True

        if not await self._create_remote():
            return False

        session = self.manager.current
        self._schedule(self._replay(session))
        return True

    async def add_message(self, message: Message) -> Optional[Session]:
        """Append locally, then mirror the message in the background."""
        session = await self.manager.add_message(message)
        if session is not None:
            self._schedule(self._mirror_message(session, message))
        return session

    async def end_session(self) -> Optional[Session]:
        """End locally, then mirror the end time in the background."""
        session = await self.manager.end_session()
        if session is not None:
            self._schedule(self._mirror_metadata(session))
        return session

    async def clear_history(self) -> Optional[Session]:
        """Clear according to ``clear_policy``; local state is never blocked on the remote."""
        if self.manager.current is None:
            return None

        if self.clear_policy == ClearHistoryPolicy.RECREATE:
            await self.end_session()
            session = await self.manager.create()
            await self._create_remote()
            return self.manager.current or session

        session = await self.manager.clear_history()
        if session is not None:
            self._schedule(self._mirror_metadata(session))
        return session

    def _schedule(self, coro: Coroutine) -> None:
        task = asyncio.create_task(self._guard(coro))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _guard(self, coro: Coroutine) -> None:
        async with self._mirror_lock:
            try:
                await coro
            except RemoteSyncError as e:
                self.logger.warning(f"Failed to sync session to server: {e}")
            except Exception:
                self.logger.exception("Unexpected error while mirroring session")

    async def _mirror_message(self, session: Session, message: Message) -> None:
        if not self.is_remote(session.session_id):
            self.logger.debug(f"Session {session.session_id} is local-only, not mirroring message")
            return

        if not await self.client.append_message(session.session_id, message):
            self.logger.warning(f"Remote service rejected message {message.id}")
        await self.client.update_session_metadata(session)

    async def _mirror_metadata(self, session: Session) -> None:
        if not self.is_remote(session.session_id):
            return
        if not await self.client.update_session_metadata(session):
            self.logger.warning(f"Remote service rejected metadata for {session.session_id}")

    async def _replay(self, session: Session) -> None:
        for message in session.messages:
            await self.client.append_message(session.session_id, message)
        await self.client.update_session_metadata(session)

    async def drain(self) -> None:
        """Wait for every scheduled mirror write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
