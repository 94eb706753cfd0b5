"""
Password hashing and local access tokens.

Local accounts authenticate with an HS256 JWT signed with ``SECRET_KEY``.
Supabase-issued tokens are verified separately in ``supabase_jwt``.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from passlib.context import CryptContext

from skill_matrix.core.config import settings

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__memory_cost=65536,
    argon2__time_cost=3,
    argon2__parallelism=4,
)

ALGORITHM = "HS256"


def create_access_token(subject: str | Any, expires_delta: timedelta) -> str:
    """Create a signed access token for ``subject`` (the user id)."""
    now = datetime.now(timezone.utc)
    to_encode = {
        "exp": now + expires_delta,
        "iat": now,
        "sub": str(subject),
        "jti": secrets.token_urlsafe(16),
        "type": "access",
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode a local access token. Raises ``jwt.InvalidTokenError``."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)
