"""
Password hashing and bearer tokens for the remote collection service.

Passwords are hashed with Argon2id. Tokens are HS256 JWTs whose subject
is the user id; they expire after `token_expire_days` and are never
stored server side, so logout is a client-side concern.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

from coincatalog.config import settings
from coincatalog.models.failure import AuthError

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Constant-time check of `password` against an Argon2 hash."""
    try:
        return _hasher.verify(hashed, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def create_access_token(
    user_id: str,
    email: str,
    expires_delta: timedelta | None = None,
    secret: str | None = None,
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(days=settings.token_expire_days)
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, secret: str | None = None) -> dict[str, Any]:
    """
    Validate a bearer token and return its claims.

    Raises:
        AuthError: Token expired, malformed or signed with another key
    """
    try:
        claims = jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthError("Invalid token", detail=str(e)) from e
    return claims
