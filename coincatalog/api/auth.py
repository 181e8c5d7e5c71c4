"""
Authentication endpoints.

Register and login issue a JWT bearer token. Logout is stateless: tokens
are not tracked server side, the client discards its copy.
"""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from coincatalog.api.deps import CurrentUserId
from coincatalog.api.schemas import CamelModel
from coincatalog.db import create_user, get_user_by_email, record_login
from coincatalog.db.database import get_session
from coincatalog.models.db import UserDB
from coincatalog.models.failure import AuthError, ConflictError, ValidationError
from coincatalog.services.auth import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(CamelModel):
    email: str = Field(default="", examples=["collector@example.com"])
    password: str = Field(default="")
    name: str | None = None


class LoginRequest(CamelModel):
    email: str = Field(default="")
    password: str = Field(default="")


class UserResponse(CamelModel):
    id: str
    email: str
    name: str | None = None
    created_at: datetime | None = None


class AuthResponse(BaseModel):
    """Response model for register and login."""

    user: UserResponse
    token: str


class LogoutResponse(BaseModel):
    success: bool = True


def _auth_response(user: UserDB) -> AuthResponse:
    return AuthResponse(
        user=UserResponse(
            id=user.id,
            email=user.email,
            name=user.name,
            created_at=user.created_at,
        ),
        token=create_access_token(user.id, user.email),
    )


@router.post("/register", response_model=AuthResponse)
async def register(
    request: RegisterRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AuthResponse:
    """
    Create an account and return a token for it.

    400 when email or password is missing or the email is taken.
    """
    email = request.email.strip()
    if not email or not request.password:
        raise ValidationError("Email and password required")

    if await get_user_by_email(session, email) is not None:
        raise ConflictError("User already exists")

    user = await create_user(session, email, hash_password(request.password), request.name)
    await session.refresh(user)
    logger.info("Registered user %s", user.id)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AuthResponse:
    """Exchange email and password for a token. 401 on bad credentials."""
    email = request.email.strip()
    if not email or not request.password:
        raise ValidationError("Email and password required")

    user = await get_user_by_email(session, email)
    if user is None or not verify_password(request.password, user.password_hash):
        raise AuthError("Invalid credentials")

    await record_login(session, user)
    return _auth_response(user)


@router.post("/logout", response_model=LogoutResponse)
async def logout(user_id: CurrentUserId) -> LogoutResponse:
    logger.debug("User %s logged out", user_id)
    return LogoutResponse()
