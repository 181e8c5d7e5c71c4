"""
Bearer credential capability.

The sync layer does not acquire or persist tokens itself; it reads them
from a CredentialStore that the login flow fills in.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    id: str
    email: str
    name: str | None = None


class CredentialStore:
    """Holds the current bearer token and the user it belongs to."""

    def __init__(self, token: str | None = None, user: AuthenticatedUser | None = None) -> None:
        self._token = token
        self._user = user

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def user(self) -> AuthenticatedUser | None:
        return self._user

    @property
    def user_id(self) -> str | None:
        return self._user.id if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set(self, token: str, user: AuthenticatedUser) -> None:
        self._token = token
        self._user = user

    def clear(self) -> None:
        self._token = None
        self._user = None
