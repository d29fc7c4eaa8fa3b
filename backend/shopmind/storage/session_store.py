"""
Session Storage - Durable local store for chat sessions.

Layout (relative to the storage root):
    sessions/<session_id>.json   full Session record
    sessions/index.json          list of SessionIndexEntry, in creation order

The local store is the source of truth: analytics and export read from here,
never from the remote service.
"""

import asyncio
import json
import logging
from pathlib import PurePosixPath
from typing import Optional, List

from pydantic import TypeAdapter, ValidationError

from ..core.exceptions import StorageCorruptionError
from ..models import Session, SessionIndexEntry
from .interface import StorageInterface

logger = logging.getLogger(__name__)

INDEX_NAME = "index"

_index_adapter = TypeAdapter(List[SessionIndexEntry])


class SessionStore:
    """
    Persists sessions as JSON documents plus a summary index.
    """

    def __init__(self, storage: StorageInterface, sessions_dir: str = "sessions"):
        """
        Initialize session storage.

        Args:
            storage: StorageInterface implementation (typically LocalStorage)
            sessions_dir: Directory holding session records and the index
        """
        self.storage = storage
        self.sessions_dir = sessions_dir
        self._index_path = f"{self.sessions_dir}/{INDEX_NAME}.json"
        # Serializes read-modify-write of the shared index
        self._index_lock = asyncio.Lock()

    def _session_path(self, session_id: str) -> str:
        if not session_id or "/" in session_id or session_id.startswith("."):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return f"{self.sessions_dir}/{session_id}.json"

    @staticmethod
    def _encode(session: Session) -> str:
        return session.model_dump_json(by_alias=True, exclude_none=True, indent=2)

    @staticmethod
    def _decode_session(path: str, content: bytes) -> Session:
        try:
            return Session.model_validate_json(content)
        except ValidationError as e:
            raise StorageCorruptionError(path, f"{e.error_count()} validation error(s)") from e

    async def _load_index(self) -> List[SessionIndexEntry]:
        content = await self.storage.load(self._index_path)
        if content is None:
            return []
        try:
            return _index_adapter.validate_json(content)
        except ValidationError as e:
            logger.warning(
                f"Session index is corrupt, rebuilding it from session records: {e.error_count()} error(s)",
                extra={"extra_fields": {"path": self._index_path}}
            )
            return await self._rebuild_index()

    async def _rebuild_index(self) -> List[SessionIndexEntry]:
        """Recreate index entries from the session records on disk, oldest first."""
        entries = []
        for path in await self.storage.list(self.sessions_dir, "*.json"):
            session_id = PurePosixPath(path).stem
            if session_id == INDEX_NAME:
                continue
            try:
                session = await self.load(session_id)
            except ValueError:
                continue
            if session is not None:
                entries.append(session.to_index_entry())

        entries.sort(key=lambda entry: entry.start_time)
        logger.info(f"Session index rebuilt with {len(entries)} entries")
        return entries

    async def _save_index(self, index: List[SessionIndexEntry]) -> bool:
        content = json.dumps(
            [entry.model_dump(mode="json", by_alias=True, exclude_none=True) for entry in index],
            indent=2,
            ensure_ascii=False,
        )
        return await self.storage.save(self._index_path, content)

    async def save(self, session: Session) -> bool:
        """
        Write the full session record and upsert its index entry.

        Args:
            session: Session to persist

        Returns:
            bool: True if both the record and the index were written
        """
        path = self._session_path(session.session_id)
        if not await self.storage.save(path, self._encode(session)):
            logger.error(f"Failed to write session record {session.session_id}")
            return False

        entry = session.to_index_entry()
        async with self._index_lock:
            index = await self._load_index()
            for position, existing in enumerate(index):
                if existing.session_id == session.session_id:
                    index[position] = entry
                    break
            else:
                index.append(entry)
            saved = await self._save_index(index)

        if not saved:
            logger.error(f"Failed to update session index for {session.session_id}")
        return saved

    async def load(self, session_id: str) -> Optional[Session]:
        """
        Load a session by id.

        Returns:
            Optional[Session]: The session, or None if absent or unreadable
        """
        path = self._session_path(session_id)
        content = await self.storage.load(path)
        if content is None:
            return None

        try:
            return self._decode_session(path, content)
        except StorageCorruptionError as e:
            logger.warning(
                f"Ignoring unreadable session record: {e}",
                extra={"extra_fields": {"session_id": session_id, "path": path}}
            )
            return None

    async def list_index(self) -> List[SessionIndexEntry]:
        """Return all session summaries in the order they were first saved."""
        async with self._index_lock:
            return await self._load_index()

    async def load_all(self) -> List[Session]:
        """Load the body of every indexed session, skipping unreadable records."""
        sessions = []
        for entry in await self.list_index():
            session = await self.load(entry.session_id)
            if session is not None:
                sessions.append(session)
        return sessions

    async def delete(self, session_id: str) -> bool:
        """
        Remove a session record and its index entry.

        Returns:
            bool: True if anything was removed
        """
        removed = await self.storage.delete(self._session_path(session_id))

        async with self._index_lock:
            index = await self._load_index()
            remaining = [entry for entry in index if entry.session_id != session_id]
            if len(remaining) != len(index):
                await self._save_index(remaining)
                removed = True

        return removed
