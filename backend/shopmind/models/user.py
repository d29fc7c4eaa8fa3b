"""
User Model - Identity supplied by the authentication flow.
"""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from .session import SESSION_ID_PATTERN


class Identity(BaseModel):
    """Current user as reported by the identity provider; email is the stable key."""
    name: str
    email: EmailStr


class IdentityToken(BaseModel):
    """Decoded bearer token: who the caller is and which session they hold."""
    identity: Identity
    session_id: Optional[str] = Field(default=None, pattern=SESSION_ID_PATTERN)
    raw_token: Optional[str] = None
