"""Shared plumbing for repositories backed by Roble tables."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Generic, List, Mapping, TypeVar

from courseven.core.errors import AuthenticationError, CoursevenError
from courseven.data.roble import QueryValue, RobleService, first_updated_record
from courseven.domain.repositories import AccessTokenProvider

LOGGER = logging.getLogger("courseven.repositories")

E = TypeVar("E")


class RobleRepository(Generic[E]):
    """Maps one Roble table onto entities of type ``E``."""

    table: str = ""

    def __init__(
        self,
        service: RobleService,
        *,
        get_access_token: AccessTokenProvider | None = None,
    ) -> None:
        self._service = service
        self._get_access_token = get_access_token

    def _from_record(self, row: Mapping[str, Any]) -> E:
        raise NotImplementedError

    async def _require_token(self) -> str:
        if self._get_access_token is None:
            raise AuthenticationError("Access token not available")
        token = await self._get_access_token()
        if not token:
            raise AuthenticationError("Access token not available")
        return token

    async def _read(self, query: Mapping[str, QueryValue] | None = None) -> List[E]:
        token = await self._require_token()
        rows = await self._service.read_table(token, self.table, query)
        return [self._from_record(row) for row in rows]

    async def _read_one(self, query: Mapping[str, QueryValue]) -> E | None:
        rows = await self._read(query)
        return rows[0] if rows else None

    async def _insert_one(self, record: Dict[str, Any]) -> E:
        token = await self._require_token()
        response = await self._service.insert_records(token, self.table, [record])
        inserted = response.get("inserted")
        if not isinstance(inserted, list) or not inserted:
            raise CoursevenError(
                _skipped_reason(response) or f"Insert into {self.table} returned no records"
            )
        return self._from_record(inserted[0])

    async def _update(
        self,
        row_id: str,
        updates: Dict[str, Any],
        refetch: Callable[[str], Any] | None = None,
    ) -> E:
        """Apply ``updates`` and return the row the backend echoes back.

        When the response carries no row, ``refetch`` reads it again.
        """
        token = await self._require_token()
        response = await self._service.update_row(token, self.table, row_id, updates)
        updated = first_updated_record(response)
        if updated is not None:
            return self._from_record(updated)
        if refetch is not None:
            refreshed = await refetch(row_id)
            if refreshed is not None:
                return refreshed
        raise CoursevenError(f"Could not read back the updated {self.table} row")

    async def _soft_delete(self, row_id: str) -> bool:
        token = await self._require_token()
        await self._service.update_row(token, self.table, row_id, {"is_active": False})
        return True


def _skipped_reason(response: Mapping[str, Any]) -> str | None:
    skipped = response.get("skipped")
    if not isinstance(skipped, list):
        return None
    for entry in skipped:
        if isinstance(entry, dict) and entry.get("reason"):
            return str(entry["reason"])
    return None


__all__ = ["RobleRepository"]
