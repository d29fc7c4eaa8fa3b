"""
Session API endpoints - lifecycle of the caller's current chat session.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.session_registry import SessionRegistry
from ..models import IdentityToken, Message, MessageCreate, Session, SessionIndexEntry
from ..storage import SessionStore
from ..sync import SyncedSessionManager
from ..utils.auth import get_current_identity
from .dependencies import get_registry, get_session_store

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("/current", response_model=Session, response_model_exclude_none=True)
async def start_session(
    token: IdentityToken = Depends(get_current_identity),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Restore the caller's active session, or create a new one.

    Returns:
        Session: The current session
    """
    return await registry.get(token).restore_or_create()


@router.get("/current", response_model=Session, response_model_exclude_none=True)
async def get_current_session(
    token: IdentityToken = Depends(get_current_identity),
    registry: SessionRegistry = Depends(get_registry),
):
    """Return the caller's current session."""
    session = registry.get(token).current
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active session"
        )
    return session


@router.post("/current/messages", response_model=Optional[Session], response_model_exclude_none=True)
async def add_message(
    payload: MessageCreate,
    token: IdentityToken = Depends(get_current_identity),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Append a message to the current session.

    Args:
        payload: Message content, sender and attached products

    Returns:
        Optional[Session]: Updated session, or null when no session is active
    """
    message = Message(
        id=payload.id or f"msg_{uuid.uuid4().hex}",
        content=payload.content,
        sender=payload.sender,
        timestamp=payload.timestamp or datetime.now(timezone.utc),
        products=payload.products,
    )
    return await registry.get(token).add_message(message)


@router.post("/current/end", response_model=Optional[Session], response_model_exclude_none=True)
async def end_session(
    token: IdentityToken = Depends(get_current_identity),
    registry: SessionRegistry = Depends(get_registry),
):
    """End the current session; null when none is active."""
    return await registry.get(token).end_session()


@router.post("/current/clear", response_model=Optional[Session], response_model_exclude_none=True)
async def clear_history(
    token: IdentityToken = Depends(get_current_identity),
    registry: SessionRegistry = Depends(get_registry),
):
    """Clear the current session's messages; null when none is active."""
    return await registry.get(token).clear_history()


@router.post("/current/sync")
async def sync_session(
    token: IdentityToken = Depends(get_current_identity),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Retry registering a local-only session with the remote service.

    Returns:
        dict: Current session id and whether the remote service now holds it
    """
    context = registry.get(token)
    if not isinstance(context, SyncedSessionManager):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Remote sync is disabled"
        )
    if context.current is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active session"
        )

    synced = await context.ensure_remote()
    return {"sessionId": context.current.session_id, "synced": synced}


@router.get("", response_model=List[SessionIndexEntry], response_model_exclude_none=True)
async def list_sessions(
    token: IdentityToken = Depends(get_current_identity),
    store: SessionStore = Depends(get_session_store),
):
    """List summaries of the caller's sessions, oldest first."""
    user_id = str(token.identity.email)
    return [entry for entry in await store.list_index() if entry.user_id == user_id]


@router.get("/{session_id}", response_model=Session, response_model_exclude_none=True)
async def get_session(
    session_id: str,
    token: IdentityToken = Depends(get_current_identity),
    store: SessionStore = Depends(get_session_store),
):
    """Load one of the caller's sessions by id."""
    try:
        session = await store.load(session_id)
    except ValueError:
        session = None

    if session is None or session.user_id != str(token.identity.email):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    return session
