"""Bearer tokens and password hashing for admin users."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from menuadmin.config import settings


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    role: str
    expires_at: datetime


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with configured rounds."""
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS),
    ).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(
    user_id: uuid.UUID,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Signed token naming the user and the role it was issued for."""
    now = datetime.now(timezone.utc)
    lifetime = expires_delta if expires_delta is not None else timedelta(hours=settings.JWT_EXPIRY_HOURS)
    return jwt.encode(
        {"sub": str(user_id), "role": str(role), "iat": now, "exp": now + lifetime},
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> TokenClaims:
    """Verify a token and return its claims.

    Raises jwt.ExpiredSignatureError for an expired token, another
    jwt.PyJWTError for a bad one, and ValueError for a malformed subject.
    """
    payload = jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    return TokenClaims(
        user_id=uuid.UUID(payload["sub"]),
        role=payload.get("role", ""),
        expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc),
    )
