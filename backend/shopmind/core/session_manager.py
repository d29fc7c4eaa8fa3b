"""
Session Lifecycle Manager - owns the current chat session of one session context.

State machine:

    UNINITIALIZED --restore_or_create--> ACTIVE --end_session--> ENDED

Every mutation is persisted to the SessionStore before the call returns. The
store is injected; nothing here reaches for module-level storage.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from ..models import Message, Session, SessionKey
from ..storage import SessionStore
from .aggregator import empty_metadata, fold_message
from .logging_config import SessionLoggerAdapter

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


PROVISIONAL_ID_PREFIX = "local_"


def new_provisional_id() -> str:
    """Locally generated id, used until a remote service assigns one."""
    return f"{PROVISIONAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_provisional_id(session_id: str) -> bool:
    return session_id.startswith(PROVISIONAL_ID_PREFIX)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    ENDED = "ended"


class SessionLifecycleManager:
    """
    Manages the active session for a single user context.

    Operations invoked with no current session are silent no-ops returning
    None; they can legitimately arrive before initialization completes.
    """

    def __init__(
        self,
        store: SessionStore,
        key: SessionKey,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            store: Durable local store (source of truth)
            key: User and, optionally, the session id to restore
            clock: Time source, defaults to the current UTC time
        """
        self.store = store
        self.key = key
        self._clock = clock or _utcnow
        self._current: Optional[Session] = None
        self._state = SessionState.UNINITIALIZED
        # One writer at a time: each append must extend the state it observed
        self._lock = asyncio.Lock()
        self.logger = SessionLoggerAdapter(logger, {"user_id": key.user_id})

    @property
    def current(self) -> Optional[Session]:
        return self._current

    @property
    def state(self) -> SessionState:
        return self._state

    def _now(self) -> datetime:
        return self._clock()

    def _set_current(self, session: Session) -> None:
        self._current = session
        self._state = SessionState.ACTIVE
        self.key = self.key.with_session(session.session_id)

    def retarget(self, session_id: Optional[str]) -> bool:
        """
        Point an idle manager at another session id, e.g. after the caller
        presents a token for a different session. Ignored while a session is active.

        Returns:
            bool: True if the key changed
        """
        if self._current is not None or not session_id or session_id == self.key.session_id:
            return False
        self.key = self.key.with_session(session_id)
        return True

    async def _persist(self, session: Session) -> bool:
        saved = await self.store.save(session)
        if not saved:
            # Local state still advances; the next successful save catches up
            self.logger.error(
                "Session could not be persisted locally",
                extra={"extra_fields": {"session_id": session.session_id}}
            )
        return saved

    async def restore_or_create(self) -> Session:
        """Adopt the stored session for this key, or start a fresh one."""
        session = await self.restore()
        if session is None:
            session = await self.create()
        return session

    async def restore(self) -> Optional[Session]:
        """
        Adopt the stored session named by the key if it is still active.

        Returns:
            Optional[Session]: The adopted session, or None when there is nothing to resume
        """
        async with self._lock:
            if self._current is not None:
                return self._current

            session_id = self.key.session_id
            if not session_id:
                return None

            session = await self.store.load(session_id)
            if session is None:
                return None

            if session.user_id != self.key.user_id:
                self.logger.warning(
                    f"Stored session {session_id} belongs to another user, not restoring"
                )
                return None

            if session.is_ended:
                self.logger.info(f"Stored session {session_id} has already ended")
                return None

            self._set_current(session)
            self.logger.info(
                f"Restored session {session_id} with {session.metadata.message_count} messages"
            )
            return session

    async def create(self, session_id: Optional[str] = None) -> Session:
        """
        Start and persist a fresh, empty session.

        Args:
            session_id: Preferred id; falls back to the key's id, then to a
                provisional one when the preferred id is already taken

        Returns:
            Session: The new current session (or the existing one if still active)
        """
        async with self._lock:
            if self._current is not None:
                self.logger.debug("A session is already active, not creating another")
                return self._current

            candidate = session_id or self.key.session_id
            if candidate and await self.store.load(candidate) is not None:
                candidate = None

            session = Session(
                session_id=candidate or new_provisional_id(),
                user_id=self.key.user_id,
                start_time=self._now(),
                metadata=empty_metadata(),
            )
            self._set_current(session)
            await self._persist(session)
            self.logger.info(f"Created session {session.session_id}")
            return session

    async def adopt(self, session: Session) -> Optional[Session]:
        """
        Make an externally obtained session current and persist it locally.

        Ended sessions are never adopted.
        """
        async with self._lock:
            if session.is_ended:
                self.logger.info(f"Not adopting ended session {session.session_id}")
                return None

            self._set_current(session)
            await self._persist(session)
            self.logger.info(f"Adopted session {session.session_id}")
            return session

    async def reassign_id(
        self,
        new_session_id: str,
        start_time: Optional[datetime] = None,
    ) -> Optional[Session]:
        """
        Replace the current session's provisional id with a canonical one.

        The record is re-saved under the new id and the provisional record is dropped.
        """
        async with self._lock:
            if self._current is None:
                return None

            old_session_id = self._current.session_id
            if new_session_id == old_session_id:
                return self._current

            updates = {"session_id": new_session_id}
            if start_time is not None:
                updates["start_time"] = start_time
            session = self._current.model_copy(update=updates)

            self._set_current(session)
            await self._persist(session)
            await self.store.delete(old_session_id)
            self.logger.info(f"Session {old_session_id} is now {new_session_id}")
            return session

    async def add_message(self, message: Message) -> Optional[Session]:
        """
        Append a message, refresh metadata and persist.

        Returns:
            Optional[Session]: The updated session, or None if no session is active
        """
        async with self._lock:
            if self._current is None:
                self.logger.info(f"No active session, ignoring message {message.id}")
                return None

            session = self._current.model_copy(update={
                "messages": self._current.messages + [message],
                "metadata": fold_message(self._current.metadata, message),
            })
            self._current = session
            await self._persist(session)
            self.logger.debug(
                f"Appended {message.sender} message",
                extra={"extra_fields": {
                    "session_id": session.session_id,
                    "message_count": session.metadata.message_count,
                }}
            )
            return session

    async def end_session(self) -> Optional[Session]:
        """
        Mark the current session as ended. A second call is a no-op.

        Returns:
            Optional[Session]: The ended session, or None if none was active
        """
        async with self._lock:
            if self._current is None:
                return None

            session = self._current.model_copy(update={"end_time": self._now()})
            self._current = None
            self._state = SessionState.ENDED
            await self._persist(session)
            self.logger.info(
                f"Ended session {session.session_id} after "
                f"{session.metadata.message_count} messages"
            )
            return session

    async def clear_history(self) -> Optional[Session]:
        """
        Drop all messages and metadata while keeping the session identity.

        Returns:
            Optional[Session]: The cleared session, or None if none was active
        """
        async with self._lock:
            if self._current is None:
                return None

            session = self._current.model_copy(update={
                "messages": [],
                "metadata": empty_metadata(),
            })
            self._current = session
            await self._persist(session)
            self.logger.info(f"Cleared history of session {session.session_id}")
            return session
