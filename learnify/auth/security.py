from datetime import datetime, timedelta, timezone
import secrets
from typing import Optional, Tuple
from uuid import UUID

import bcrypt
from jose import jwt

from learnify.core.config import settings


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    # Invited users have no password until they sign up
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    user_id: UUID,
    role: str,
    school_id: Optional[UUID],
    *,
    issued_at: Optional[datetime] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """JWT carrying identity only; role/status/step are re-read from the store on every request."""
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes
    if issued_at is None:
        issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "role": role,
        "school_id": str(school_id) if school_id else None,
        "iat": int(issued_at.timestamp()),
        "exp": issued_at + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Raises jose.JWTError when the token is invalid or expired."""
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def create_refresh_token(*, expires_days: Optional[int] = None) -> Tuple[str, datetime]:
    if expires_days is None:
        expires_days = settings.refresh_token_expire_days
    expire = datetime.now(timezone.utc) + timedelta(days=expires_days)
    return secrets.token_urlsafe(48), expire
