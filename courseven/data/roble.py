"""Async HTTP client for the Roble table API and its read-only login."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Mapping

import httpx

from courseven.core.config import RobleConfig
from courseven.core.errors import AuthenticationError, RemoteError, extract_error_message

LOGGER = logging.getLogger("courseven.roble")

QueryValue = str | int | float | bool | None
RecordPayload = Dict[str, Any]

TEMP_TOKEN_TTL_SECONDS = 5 * 60


def encode_query(query: Mapping[str, QueryValue]) -> Dict[str, str]:
    """Drop ``None`` values and render booleans the way the backend expects."""
    params: Dict[str, str] = {}
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        else:
            params[key] = str(value)
    return params


def first_updated_record(response: Mapping[str, Any]) -> RecordPayload | None:
    """Pick the row echoed back by an update/insert response, if any."""
    for key in ("updated", "inserted"):
        rows = response.get(key)
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0]
    data = response.get("data")
    if isinstance(data, dict):
        return data
    return None


class RobleService:
    """Generic ``read``/``insert``/``update`` access to named Roble tables."""

    def __init__(
        self,
        config: RobleConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        temp_token_ttl: float = TEMP_TOKEN_TTL_SECONDS,
    ) -> None:
        self._config = config or RobleConfig()
        if client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout)
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False
        self._clock = clock
        self._temp_token_ttl = temp_token_ttl
        self._temp_token: str | None = None
        self._temp_token_expires_at = 0.0
        self._pending_temp_token: asyncio.Future[str] | None = None

    @property
    def config(self) -> RobleConfig:
        return self._config

    def _db_url(self, operation: str, *, fallback: bool = False) -> str:
        base = self._config.database_fallback_base if fallback else self._config.database_base_url
        return f"{base}/{self._config.database_name}/{operation}"

    @staticmethod
    def _auth_headers(access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def request(
        self, method: str, url: str, *, table: str | None = None, **kwargs: Any
    ) -> httpx.Response:
        """Send through the shared client; transport failures become :class:`RemoteError`."""
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            LOGGER.warning("%s %s failed: %s", method, url, exc)
            raise RemoteError(table, None, str(exc) or type(exc).__name__) from exc

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(None, response.status_code, "Invalid response from Roble") from exc

    # ------------------------------------------------------------------
    # table operations

    async def read_table(
        self,
        access_token: str,
        table: str,
        query: Mapping[str, QueryValue] | None = None,
    ) -> List[RecordPayload]:
        params = encode_query({"tableName": table, **(query or {})})
        response = await self.request(
            "GET",
            self._db_url("read"),
            table=table,
            params=params,
            headers=self._auth_headers(access_token),
        )
        data = self._decode(response)
        if response.status_code != 200:
            raise RemoteError(table, response.status_code, extract_error_message(data))
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]

    async def insert_records(
        self,
        access_token: str,
        table: str,
        records: List[RecordPayload],
    ) -> RecordPayload:
        response = await self.request(
            "POST",
            self._db_url("insert"),
            table=table,
            json={"tableName": table, "records": records},
            headers=self._auth_headers(access_token),
        )
        data = self._decode(response)
        if response.status_code not in (200, 201):
            raise RemoteError(table, response.status_code, extract_error_message(data))
        return data if isinstance(data, dict) else {"inserted": data}

    async def update_row(
        self,
        access_token: str,
        table: str,
        row_id: str,
        updates: RecordPayload,
    ) -> RecordPayload:
        payload = {
            "tableName": table,
            "idColumn": "_id",
            "idValue": row_id,
            "updates": updates,
        }
        headers = self._auth_headers(access_token)
        primary = self._db_url("update")
        response = await self.request("PUT", primary, table=table, json=payload, headers=headers)
        fallback = self._db_url("update", fallback=True)
        if response.status_code == 404 and fallback != primary:
            LOGGER.info("Update on %s returned 404; retrying %s", table, fallback)
            response = await self.request("PUT", fallback, table=table, json=payload, headers=headers)
        data = self._decode(response)
        if response.status_code not in (200, 201):
            raise RemoteError(table, response.status_code, extract_error_message(data))
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # read-only credentials

    async def login_auth(self, email: str, password: str) -> RecordPayload:
        url = f"{self._config.auth_base_url}/{self._config.database_name}/login"
        response = await self.request("POST", url, json={"email": email, "password": password})
        data = self._decode(response)
        if response.status_code not in (200, 201):
            raise AuthenticationError(extract_error_message(data) or "Auth login failed")
        return data if isinstance(data, dict) else {}

    async def get_temp_access_token(self) -> str:
        """Token of the read-only account, cached for five minutes.

        Concurrent callers share one login request.
        """
        if self._temp_token and self._temp_token_expires_at > self._clock():
            return self._temp_token
        if self._pending_temp_token is not None:
            return await asyncio.shield(self._pending_temp_token)
        if not self._config.has_readonly_credentials:
            raise AuthenticationError(
                "Read-only credentials are missing (ROBLE_READONLY_EMAIL / ROBLE_READONLY_PASSWORD)"
            )
        future: asyncio.Future[str] = asyncio.ensure_future(self._login_readonly())
        self._pending_temp_token = future
        return await asyncio.shield(future)

    async def _login_readonly(self) -> str:
        try:
            auth = await self.login_auth(
                self._config.readonly_email or "",
                self._config.readonly_password or "",
            )
            token = auth.get("accessToken")
            if not isinstance(token, str) or not token:
                raise AuthenticationError("Could not obtain a temporary token")
            self._temp_token = token
            self._temp_token_expires_at = self._clock() + self._temp_token_ttl
            return token
        finally:
            self._pending_temp_token = None

    def reset_temp_token(self) -> None:
        self._temp_token = None
        self._temp_token_expires_at = 0.0

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RobleService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = [
    "QueryValue",
    "RecordPayload",
    "RobleService",
    "encode_query",
    "first_updated_record",
]
