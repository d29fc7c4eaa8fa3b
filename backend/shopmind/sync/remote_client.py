"""
Remote Session Client - HTTP client for the remote chat session service.

Every response is validated into a typed model here. Transport failures, HTTP
errors and malformed payloads all surface as RemoteUnavailableError, so no
loosely-shaped data ever reaches the aggregator.
"""

import json
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, Field, ValidationError

from ..core.aggregator import rebuild_metadata
from ..core.exceptions import RemoteSessionNotFoundError, RemoteUnavailableError
from ..core.logging_config import filter_sensitive_data, truncate_large_data
from ..models import Message, Session
from ..models.session import SESSION_ID_PATTERN, CamelModel

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RemoteSessionCreated(CamelModel):
    """Response of the create-session endpoint."""
    session_id: str = Field(pattern=SESSION_ID_PATTERN)
    start_time: datetime


class RemoteAck(CamelModel):
    """Generic success acknowledgement."""
    success: bool
    message_id: Optional[str] = None


class RemoteSessionPayload(CamelModel):
    """Session as returned by the remote service (metadata is not trusted)."""
    session_id: str = Field(pattern=SESSION_ID_PATTERN)
    user_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    messages: List[Message] = []

    def to_session(self) -> Session:
        return Session(
            session_id=self.session_id,
            user_id=self.user_id,
            start_time=self.start_time,
            end_time=self.end_time,
            messages=self.messages,
            metadata=rebuild_metadata(self.messages),
        )


class RemoteSessionClient:
    """
    Client for the remote session service.
    A new httpx.AsyncClient is opened per call, bounded by ``timeout``.
    """

    SESSIONS_PATH = "/chat/sessions"
    SESSION_DETAIL_PATH = "/chat/session/{session_id}"
    SEND_MESSAGE_PATH = "/chat/send"

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service base URL, e.g. "http://127.0.0.1:5000/api"
            token: Bearer token of the current user
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def _get_headers(self, session_id: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if session_id:
            headers["X-Session-ID"] = session_id
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        start_time = time.time()

        if logger.isEnabledFor(logging.DEBUG) and payload is not None:
            logger.debug(
                f"Remote call starting: {method} {path} "
                f"payload={truncate_large_data(json.dumps(filter_sensitive_data(payload)), 1000)}"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(
                    method, url, json=payload, headers=self._get_headers(session_id)
                )
        except httpx.HTTPError as e:
            raise RemoteUnavailableError(f"{method} {path} failed: {e.__class__.__name__}: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(f"Remote call finished: {method} {path} -> {resp.status_code} ({duration_ms:.2f}ms)")
        return resp

    @staticmethod
    def _parse(resp: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteUnavailableError(
                f"Remote service returned {resp.status_code}: {truncate_large_data(resp.text, 500)}"
            ) from e

        try:
            return model.model_validate_json(resp.content)
        except ValidationError as e:
            raise RemoteUnavailableError(
                f"Malformed {model.__name__} payload: {e.error_count()} validation error(s)"
            ) from e

    async def create_session(self, user_id: str) -> RemoteSessionCreated:
        """
        Create a session on the remote service.

        Args:
            user_id: Stable user key (email)

        Returns:
            RemoteSessionCreated: Server-assigned id and start time
        """
        resp = await self._request("POST", self.SESSIONS_PATH, {"userId": user_id})
        return self._parse(resp, RemoteSessionCreated)

    async def append_message(self, session_id: str, message: Message) -> bool:
        """
        Mirror one message to the remote session.

        Returns:
            bool: The service's success flag
        """
        payload = {
            "sessionId": session_id,
            "message": message.content,
            "sender": message.sender,
            "timestamp": message.timestamp.isoformat(),
            "products": [p.model_dump(mode="json", by_alias=True) for p in message.products],
        }
        resp = await self._request("POST", self.SEND_MESSAGE_PATH, payload, session_id=session_id)
        return self._parse(resp, RemoteAck).success

    async def fetch_session(self, session_id: str) -> Session:
        """
        Fetch a session with its messages; metadata is recomputed locally.

        Raises:
            RemoteSessionNotFoundError: The service does not know the session
            RemoteUnavailableError: Any other failure
        """
        path = self.SESSION_DETAIL_PATH.format(session_id=session_id)
        resp = await self._request("GET", path, session_id=session_id)
        if resp.status_code == 404:
            raise RemoteSessionNotFoundError(session_id)
        return self._parse(resp, RemoteSessionPayload).to_session()

    async def update_session_metadata(self, session: Session) -> bool:
        """
        Push end time and metadata of a session.

        Returns:
            bool: The service's success flag
        """
        payload = {
            "sessionId": session.session_id,
            "endTime": session.end_time.isoformat() if session.end_time else None,
            "metadata": session.metadata.model_dump(mode="json", by_alias=True, exclude_none=True),
        }
        path = self.SESSION_DETAIL_PATH.format(session_id=session.session_id)
        resp = await self._request("PUT", path, payload, session_id=session.session_id)
        return self._parse(resp, RemoteAck).success
