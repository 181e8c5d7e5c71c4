"""
HTTP client for the remote collection service.

Wraps httpx.AsyncClient with a bounded timeout and maps every outcome onto
the failure taxonomy:

- transport errors, timeouts and 5xx -> SyncFailure
- 401/403 (or no credential for a protected call) -> AuthError
- 404 -> NotFoundError
- 400/422 -> ValidationError
"""

import logging
from typing import Any

import httpx

from coincatalog.models.failure import (
    AuthError,
    NotFoundError,
    SyncFailure,
    ValidationError,
)
from coincatalog.services.credentials import AuthenticatedUser, CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


class RemoteCollectionClient:
    """
    Client for the REST surface of the remote collection service.

    Args:
        base_url: Service root, e.g. "https://api.example.com"
        credentials: Source of the bearer token; login/register fill it in
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use ASGI/mock transports)
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialStore | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.credentials = credentials or CredentialStore()
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": "CoinCatalog/1.0"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RemoteCollectionClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self.credentials.is_authenticated

    async def _request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        headers = {}
        if auth:
            token = self.credentials.token
            if token is None:
                raise AuthError("Not logged in")
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.TimeoutException as e:
            raise SyncFailure("Remote collection service timed out", detail=str(e)) from e
        except httpx.TransportError as e:
            raise SyncFailure("Remote collection service unreachable", detail=str(e)) from e

        if response.status_code in (401, 403):
            raise AuthError("Credential rejected", detail=_error_message(response))
        if response.status_code == 404:
            raise NotFoundError("Remote record", path)
        if response.status_code in (400, 422):
            raise ValidationError(_error_message(response))
        if response.status_code >= 400:
            raise SyncFailure(
                f"Remote collection service error {response.status_code}",
                detail=_error_message(response),
            )
        return response.json()

    # --- Auth ---

    def _store_session(self, body: dict[str, Any]) -> AuthenticatedUser:
        user_data = body["user"]
        user = AuthenticatedUser(
            id=str(user_data["id"]),
            email=user_data["email"],
            name=user_data.get("name"),
        )
        self.credentials.set(body["token"], user)
        return user

    async def register(self, email: str, password: str, name: str | None = None) -> AuthenticatedUser:
        if not email or not password:
            raise ValidationError("Email and password required")
        body = await self._request(
            "POST",
            "/auth/register",
            auth=False,
            json={"email": email, "password": password, "name": name},
        )
        return self._store_session(body)

    async def login(self, email: str, password: str) -> AuthenticatedUser:
        if not email or not password:
            raise ValidationError("Email and password required")
        body = await self._request(
            "POST",
            "/auth/login",
            auth=False,
            json={"email": email, "password": password},
        )
        return self._store_session(body)

    async def logout(self) -> None:
        try:
            await self._request("POST", "/auth/logout")
        finally:
            self.credentials.clear()

    # --- Collection ---

    async def fetch_collection(self, is_wishlist: bool) -> list[dict[str, Any]]:
        return await self._request(
            "GET",
            "/collection",
            params={"isWishlist": "true" if is_wishlist else "false"},
        )

    async def upsert_coin(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/collection", json=payload)

    async def update_coin(self, remote_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """PUT onto a known server row. NotFoundError if the row is gone or deleted."""
        return await self._request("PUT", f"/collection/{remote_id}", json=changes)

    async def delete_coin(
        self,
        catalog_coin_id: str,
        updated_at: str | None = None,
        local_id: str | None = None,
    ) -> None:
        """
        Soft-delete the server row for a catalog coin.

        With `local_id` the server leaves a row that now belongs to another
        client record alone.
        """
        params: dict[str, str] = {}
        if updated_at:
            params["updatedAt"] = updated_at
        if local_id:
            params["localId"] = local_id
        await self._request("DELETE", f"/collection/{catalog_coin_id}", params=params or None)

    async def bulk_sync(self, payloads: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return await self._request("POST", "/collection/sync", json={"coins": payloads})

    async def fetch_stats(self) -> dict[str, Any]:
        return await self._request("GET", "/collection/stats")

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/health", auth=False)
