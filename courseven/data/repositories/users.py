from __future__ import annotations

from typing import Any, Mapping

from courseven.core.errors import UnsupportedOperationError
from courseven.data.records import user_from_record
from courseven.data.repositories.base import RobleRepository
from courseven.domain.models import User


class RobleUserRepository(RobleRepository[User]):
    """Read access to the ``users`` table. Accounts are created through auth signup."""

    table = "users"

    def _from_record(self, row: Mapping[str, Any]) -> User:
        return user_from_record(row)

    async def get_user_by_id(self, user_id: str) -> User | None:
        return await self._read_one({"_id": user_id})

    async def get_user_by_email(self, email: str) -> User | None:
        return await self._read_one({"email": email.strip().lower()})

    async def get_user_by_student_id(self, student_id: str) -> User | None:
        return await self._read_one({"student_id": student_id})

    async def get_user_by_username(self, username: str) -> User | None:
        return await self._read_one({"username": username.strip()})

    async def create_user(self, user: User) -> User:
        raise UnsupportedOperationError("UserRepository.create_user")

    async def update_user(self, user: User) -> User:
        raise UnsupportedOperationError("UserRepository.update_user")

    async def delete_user(self, user_id: str) -> bool:
        raise UnsupportedOperationError("UserRepository.delete_user")


__all__ = ["RobleUserRepository"]
