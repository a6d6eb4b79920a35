"""
Authentication utilities - bearer token extraction and JWT verification.

Tokens are issued by the hosted auth service; this module only verifies
them (HS256 with the shared JWT secret) and never stores credentials.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from ..config import settings
from ..models import Identity


def bearer_token(request: Request) -> str:
    """
    Extract the bearer token from the Authorization header.

    Returns:
        str: Token, or "" when the header is missing or empty
    """
    header = request.headers.get("authorization") or ""
    if header[:7].lower() == "bearer ":
        header = header[7:]
    return header.strip()


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT shaped like the hosted auth service's access tokens.

    Args:
        user_id: Subject of the token
        email: Optional email claim
        expires_delta: Optional expiration time delta

    Returns:
        str: Encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {"sub": user_id, "exp": expire}
    if email:
        to_encode["email"] = email
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> Optional[Identity]:
    """
    Decode and verify an access token.

    Args:
        token: JWT token string

    Returns:
        Optional[Identity]: Caller identity if valid, None if the token is
        malformed, expired, or signed with another key
    """
    if not token:
        return None
    options = {} if settings.jwt_audience else {"verify_aud": False}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None
    return Identity(user_id=str(user_id), email=payload.get("email"))
