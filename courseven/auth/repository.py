"""Auth repository: remote account operations plus the locally stored session."""

from __future__ import annotations

import logging
from typing import Protocol

from courseven.auth.remote import AuthRemoteDataSource
from courseven.domain.models import AuthSession, AuthTokens, StoredSession, User

LOGGER = logging.getLogger("courseven.auth")


class SessionStore(Protocol):
    async def save_session(self, session: AuthSession, keep_logged_in: bool) -> None: ...

    async def get_session(self) -> StoredSession | None: ...

    async def update_tokens(self, tokens: AuthTokens) -> None: ...

    async def clear_session(self) -> None: ...


class AuthRepository:
    def __init__(self, remote: AuthRemoteDataSource, local: SessionStore) -> None:
        self.remote = remote
        self.local = local

    async def login(self, identifier: str, password: str, *, keep_logged_in: bool = False) -> AuthSession:
        session = await self.remote.login(identifier, password)
        await self.local.save_session(session, keep_logged_in)
        LOGGER.info("Signed in", extra={"user_id": session.user.id})
        return session

    async def signup(self, first_name: str, last_name: str, email: str, password: str) -> str:
        name = f"{first_name} {last_name}".strip()
        return await self.remote.signup(email.strip().lower(), password, name)

    async def logout(self) -> None:
        existing = await self.local.get_session()
        await self.local.clear_session()
        if existing is not None:
            await self.remote.logout(existing.session.tokens.access_token)

    async def get_current_session(self) -> AuthSession | None:
        """Restore the stored session, refreshing its token when it expired.

        Sessions saved without "keep me signed in" are discarded. A token that
        fails verification and cannot be refreshed clears the stored session.
        """
        stored = await self.local.get_session()
        if stored is None:
            return None
        if not stored.keep_logged_in:
            await self.local.clear_session()
            return None

        tokens = stored.session.tokens
        if await self.remote.verify_token(tokens.access_token):
            return stored.session

        if tokens.refresh_token:
            refreshed = await self.remote.refresh_token(tokens.refresh_token)
            if refreshed is not None:
                merged = AuthTokens(
                    access_token=refreshed.access_token,
                    refresh_token=refreshed.refresh_token or tokens.refresh_token,
                )
                session = AuthSession(user=stored.session.user, tokens=merged)
                await self.local.save_session(session, stored.keep_logged_in)
                LOGGER.info("Access token refreshed", extra={"user_id": session.user.id})
                return session

        LOGGER.info("Stored session expired; clearing it")
        await self.local.clear_session()
        return None

    async def access_token(self) -> str | None:
        """Token of the stored session; used as the repositories' token provider."""
        stored = await self.local.get_session()
        return stored.session.tokens.access_token if stored else None

    async def current_user(self) -> User | None:
        stored = await self.local.get_session()
        return stored.session.user if stored else None

    async def is_email_available(self, email: str) -> bool:
        return await self.remote.is_email_available(email)

    async def is_username_available(self, username: str) -> bool:
        return await self.remote.is_username_available(username)


__all__ = ["AuthRepository", "SessionStore"]
