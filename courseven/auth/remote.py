"""HTTP calls against the Roble auth API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import httpx

from courseven.core.errors import AuthenticationError, RemoteError, extract_error_message
from courseven.data.records import user_from_record
from courseven.data.roble import RobleService
from courseven.domain.models import AuthSession, AuthTokens, User

LOGGER = logging.getLogger("courseven.auth.remote")

SUCCESS = (200, 201)


def fallback_username(email: str) -> str:
    return email.split("@", 1)[0] if "@" in email else email


def _json(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError as exc:
        raise RemoteError(None, response.status_code, "Invalid JSON response from Roble auth") from exc
    return data if isinstance(data, dict) else {"data": data}


class AuthRemoteDataSource:
    """Login, signup, verification, and token upkeep for Roble accounts.

    User rows are read and written through :class:`RobleService`; the auth
    endpoints share its HTTP client.
    """

    def __init__(self, service: RobleService) -> None:
        self._service = service
        self._config = service.config

    def _auth_url(self, operation: str) -> str:
        return f"{self._config.auth_base_url}/{self._config.database_name}/{operation}"

    async def _post(self, operation: str, payload: Dict[str, Any]) -> httpx.Response:
        return await self._service.request("POST", self._auth_url(operation), json=payload)

    async def login_auth(self, email: str, password: str) -> Dict[str, Any]:
        response = await self._post("login", {"email": email, "password": password})
        data = _json(response)
        if response.status_code not in SUCCESS:
            raise AuthenticationError(extract_error_message(data) or "Login failed")
        if not data.get("accessToken"):
            raise AuthenticationError("Invalid response from the auth service")
        return data

    async def login(self, identifier: str, password: str) -> AuthSession:
        """Sign in with an email or a username and load the user's row."""
        cleaned = identifier.strip()
        if "@" in cleaned:
            email: str | None = cleaned.lower()
        else:
            email = await self._email_for_username(cleaned)
        if not email:
            raise AuthenticationError("User not found")

        auth = await self.login_auth(email, password)
        access_token = auth["accessToken"]
        user = await self.get_user_by_email(access_token, email)
        if user is None:
            raise AuthenticationError("Could not load the user's data")
        return AuthSession(
            user=user,
            tokens=AuthTokens(access_token=access_token, refresh_token=auth.get("refreshToken")),
        )

    async def signup(self, email: str, password: str, name: str) -> str:
        response = await self._post("signup", {"email": email, "password": password, "name": name})
        data = _json(response)
        if response.status_code in SUCCESS:
            return str(data.get("message") or "Signup succeeded")
        raise RemoteError(None, response.status_code, extract_error_message(data) or "Signup failed")

    async def verify_email(self, email: str, code: str) -> Dict[str, Any]:
        response = await self._post("verify-email", {"email": email, "code": code})
        data = _json(response)
        if response.status_code in SUCCESS:
            return {"success": data.get("success", True), "message": data.get("message")}
        raise AuthenticationError(extract_error_message(data) or "Invalid verification code")

    async def create_user_in_database(
        self,
        access_token: str,
        *,
        email: str,
        first_name: str,
        last_name: str,
        username: str,
        student_id: str | None = None,
    ) -> None:
        record = {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "username": username,
            "student_id": student_id or "",
            "is_active": True,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        await self._service.insert_records(access_token, "users", [record])

    async def get_user_by_email(self, access_token: str, email: str) -> User | None:
        try:
            rows = await self._service.read_table(access_token, "users", {"email": email})
        except RemoteError as exc:
            if exc.status == 404:
                return None
            raise
        return user_from_record(rows[0]) if rows else None

    async def refresh_token(self, refresh_token: str) -> AuthTokens | None:
        """Exchange ``refresh_token`` for new tokens; ``None`` when refused."""
        response = await self._service.request(
            "POST",
            f"{self._config.auth_base_url}/refresh-token",
            json={"refreshToken": refresh_token},
        )
        if response.status_code != 200:
            return None
        data = _json(response)
        access_token = data.get("accessToken")
        if not access_token:
            return None
        return AuthTokens(access_token=access_token, refresh_token=data.get("refreshToken"))

    async def verify_token(self, access_token: str) -> bool:
        if not access_token:
            return False
        response = await self._service.request(
            "GET",
            self._auth_url("verify-token"),
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return response.status_code == 200

    async def logout(self, access_token: str) -> None:
        if not access_token:
            return
        response = await self._service.request(
            "POST",
            self._auth_url("logout"),
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code not in SUCCESS:
            LOGGER.info("Remote logout returned %s", response.status_code)

    async def is_email_available(self, email: str) -> bool:
        token = await self._service.get_temp_access_token()
        rows = await self._service.read_table(token, "users", {"email": email.strip().lower()})
        return not rows

    async def is_username_available(self, username: str) -> bool:
        token = await self._service.get_temp_access_token()
        rows = await self._service.read_table(token, "users", {"username": username.strip()})
        return not rows

    async def _email_for_username(self, username: str) -> str | None:
        token = await self._service.get_temp_access_token()
        rows = await self._service.read_table(token, "users", {"username": username})
        if not rows:
            return None
        email = rows[0].get("email")
        return str(email) if email else None


__all__ = ["AuthRemoteDataSource", "fallback_username"]
