"""
Authentication utilities - JWT identity tokens.

The authentication flow itself lives elsewhere; this module only decodes the
bearer token it issues into an Identity plus the caller's session id.

Claims: ``sub`` (email), ``name``, optional ``sid`` (session id).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from pydantic import ValidationError

from ..config import settings
from ..models import Identity, IdentityToken

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def create_access_token(
    identity: Identity,
    session_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token for a user.

    Args:
        identity: User name and email
        session_id: Optional session id the token is bound to
        expires_delta: Optional expiration time delta

    Returns:
        str: Encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {"sub": str(identity.email), "name": identity.name, "exp": expire}
    if session_id:
        to_encode["sid"] = session_id

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_identity_token(token: str) -> Optional[IdentityToken]:
    """
    Decode and verify a JWT access token.

    Args:
        token: JWT token string

    Returns:
        Optional[IdentityToken]: Identity and session id if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        email = payload.get("sub")
        if email is None:
            return None

        identity = Identity(name=payload.get("name") or email, email=email)
        return IdentityToken(identity=identity, session_id=payload.get("sid"), raw_token=token)
    except (JWTError, ValidationError):
        return None


def is_token_valid(token: Optional[str]) -> bool:
    """Authentication validity check."""
    return bool(token) and decode_identity_token(token) is not None


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> IdentityToken:
    """
    Dependency returning the caller's identity.

    Raises:
        HTTPException: If the token is invalid
    """
    token_data = decode_identity_token(credentials.credentials)
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token_data


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security)
) -> Optional[IdentityToken]:
    """Dependency returning the caller's identity, or None when unauthenticated."""
    if credentials is None:
        return None
    return decode_identity_token(credentials.credentials)
