"""Shared request dependencies."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from coincatalog.models.failure import AuthError
from coincatalog.services.auth import decode_access_token

_bearer = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> str:
    """
    Resolve the bearer token to a user id.

    Raises AuthError (401) when the header is missing or the token invalid.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Access token required")
    claims = decode_access_token(credentials.credentials)
    return str(claims["sub"])


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
