"""Shared plumbing for the per-feature controllers."""

from __future__ import annotations

from typing import Awaitable, Callable, Hashable, Mapping, Tuple, TypeVar

from courseven.core.errors import AuthenticationError
from courseven.core.store import CS, Controller

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

CurrentUserProvider = Callable[[], Awaitable[str | None]]


def with_entry(mapping: Mapping[K, V], key: K, value: V) -> dict[K, V]:
    updated = dict(mapping)
    updated[key] = value
    return updated


def without_entry(mapping: Mapping[K, V], key: K) -> dict[K, V]:
    return {k: v for k, v in mapping.items() if k != key}


def with_member(items: Tuple[K, ...], item: K) -> Tuple[K, ...]:
    return items if item in items else items + (item,)


def without_member(items: Tuple[K, ...], item: K) -> Tuple[K, ...]:
    return tuple(existing for existing in items if existing != item)


class SessionController(Controller[CS]):
    """Controller that acts on behalf of the signed-in user."""

    def __init__(self, initial_state: CS, get_current_user_id: CurrentUserProvider) -> None:
        super().__init__(initial_state)
        self._get_current_user_id = get_current_user_id

    @property
    def is_loading(self) -> bool:
        return self.get_snapshot().is_loading

    @property
    def error(self) -> str | None:
        return self.get_snapshot().error

    async def _require_user_id(self) -> str:
        user_id = await self._get_current_user_id()
        if not user_id:
            raise AuthenticationError("User is not signed in")
        return user_id


__all__ = [
    "CurrentUserProvider",
    "SessionController",
    "with_entry",
    "with_member",
    "without_entry",
    "without_member",
]
