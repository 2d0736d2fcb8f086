from __future__ import annotations

import logging

from courseven.auth.remote import AuthRemoteDataSource, fallback_username
from courseven.auth.repository import AuthRepository, SessionStore
from courseven.core.errors import AuthenticationError, CoursevenError, ValidationFailure
from courseven.domain.models import AuthSession

LOGGER = logging.getLogger("courseven.usecases.auth")


class LoginUseCase:
    def __init__(self, repository: AuthRepository) -> None:
        self.repository = repository

    async def execute(self, identifier: str, password: str, *, keep_logged_in: bool = False) -> AuthSession:
        if not identifier.strip() or not password:
            raise ValidationFailure("Email or username and password are required")
        return await self.repository.login(identifier, password, keep_logged_in=keep_logged_in)


class SignupUseCase:
    def __init__(self, repository: AuthRepository) -> None:
        self.repository = repository

    async def execute(self, *, first_name: str, last_name: str, email: str, password: str) -> str:
        if "@" not in email:
            raise ValidationFailure("A valid email is required")
        return await self.repository.signup(first_name, last_name, email, password)


class VerifyEmailUseCase:
    """Confirm the signup code, create the user row, and sign the user in."""

    def __init__(self, remote: AuthRemoteDataSource, local: SessionStore) -> None:
        self.remote = remote
        self.local = local

    async def execute(
        self,
        *,
        email: str,
        code: str,
        password: str,
        first_name: str,
        last_name: str,
        username: str | None = None,
    ) -> AuthSession:
        email = email.strip().lower()
        verified = await self.remote.verify_email(email, code.strip())
        if not verified.get("success"):
            raise AuthenticationError(verified.get("message") or "Could not verify the email")

        auth = await self.remote.login_auth(email, password)
        temp_token = auth["accessToken"]
        raw_user = auth.get("user") if isinstance(auth.get("user"), dict) else {}
        try:
            await self.remote.create_user_in_database(
                temp_token,
                email=email,
                first_name=first_name,
                last_name=last_name,
                username=username or fallback_username(email),
                student_id=raw_user.get("_id") or raw_user.get("student_id"),
            )
        except CoursevenError:
            # A retried verification finds the row already created.
            if await self.remote.get_user_by_email(temp_token, email) is None:
                raise
            LOGGER.info("User row already existed for %s", email)

        session = await self.remote.login(email, password)
        await self.local.save_session(session, True)
        return session


class LogoutUseCase:
    def __init__(self, repository: AuthRepository) -> None:
        self.repository = repository

    async def execute(self) -> None:
        await self.repository.logout()


class GetCurrentSessionUseCase:
    def __init__(self, repository: AuthRepository) -> None:
        self.repository = repository

    async def execute(self) -> AuthSession | None:
        return await self.repository.get_current_session()


__all__ = [
    "GetCurrentSessionUseCase",
    "LoginUseCase",
    "LogoutUseCase",
    "SignupUseCase",
    "VerifyEmailUseCase",
]
