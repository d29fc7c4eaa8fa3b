"""
Session Models - Defines structures for chat sessions, messages and the session index.

Every model serializes with camelCase aliases so persisted records and remote
payloads share one wire shape; snake_case names are accepted on input too.
"""

from datetime import datetime, timezone
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


SESSION_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_\-]*$"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so durations can always be computed."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    """Base model using camelCase field aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Product(CamelModel):
    """Product attached to a bot message by the catalog service."""
    id: str
    name: str
    category: str
    description: str = ""
    price: float = 0.0
    original_price: Optional[float] = None
    image: str = ""
    rating: float = 0.0
    reviews: int = 0
    in_stock: bool = True
    tags: List[str] = Field(default_factory=list)


class Message(CamelModel):
    """One exchanged chat message."""
    id: str
    content: str
    sender: Literal["user", "bot"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    products: List[Product] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def utc_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @field_validator("products", mode="before")
    @classmethod
    def none_means_no_products(cls, value):
        return [] if value is None else value


class SessionMetadata(CamelModel):
    """Aggregates derived from a session's messages."""
    message_count: int = Field(default=0, ge=0)
    user_message_count: int = Field(default=0, ge=0)
    bot_message_count: int = Field(default=0, ge=0)
    product_interactions: int = Field(default=0, ge=0)
    search_queries: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)  # set semantics

    @field_validator("categories")
    @classmethod
    def unique_categories(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class SessionIndexEntry(CamelModel):
    """Lightweight summary used to enumerate sessions without loading bodies."""
    session_id: str
    user_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    message_count: int = 0

    @field_validator("start_time", "end_time")
    @classmethod
    def utc_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class Session(CamelModel):
    """Full chat session with messages and derived metadata."""
    session_id: str
    user_id: str
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    messages: List[Message] = Field(default_factory=list)
    metadata: SessionMetadata = Field(default_factory=SessionMetadata)

    @field_validator("start_time", "end_time")
    @classmethod
    def utc_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @property
    def is_ended(self) -> bool:
        return self.end_time is not None

    def to_index_entry(self) -> SessionIndexEntry:
        return SessionIndexEntry(
            session_id=self.session_id,
            user_id=self.user_id,
            start_time=self.start_time,
            end_time=self.end_time,
            message_count=self.metadata.message_count,
        )


class SessionKey(BaseModel):
    """
    Identifies one session context: the owning user and, when known, the
    session id handed out with the user's session token.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    session_id: Optional[str] = Field(default=None, pattern=SESSION_ID_PATTERN)

    def with_session(self, session_id: str) -> "SessionKey":
        return SessionKey(user_id=self.user_id, session_id=session_id)


class MessageCreate(CamelModel):
    """Inbound message payload; id and timestamp are filled in when omitted."""
    content: str
    sender: Literal["user", "bot"]
    id: Optional[str] = None
    timestamp: Optional[datetime] = None
    products: List[Product] = Field(default_factory=list)
