from __future__ import annotations

from typing import Any, List, Mapping

from courseven.data.records import membership_from_record, membership_to_record
from courseven.data.repositories.base import RobleRepository
from courseven.domain.models import Membership


class RobleMembershipRepository(RobleRepository[Membership]):
    table = "memberships"

    def _from_record(self, row: Mapping[str, Any]) -> Membership:
        return membership_from_record(row)

    async def get_membership_by_id(self, membership_id: str) -> Membership | None:
        if not membership_id:
            return None
        return await self._read_one({"_id": membership_id})

    async def get_memberships_by_user(self, user_id: str) -> List[Membership]:
        return await self._read({"user_id": user_id, "is_active": True})

    async def get_memberships_by_group(self, group_id: str) -> List[Membership]:
        return await self._read({"group_id": group_id, "is_active": True})

    async def is_user_member_of_group(self, user_id: str, group_id: str) -> bool:
        rows = await self._read({"user_id": user_id, "group_id": group_id, "is_active": True})
        return bool(rows)

    async def create_membership(self, membership: Membership) -> Membership:
        return await self._insert_one(membership_to_record(membership))

    async def update_membership(self, membership: Membership) -> Membership:
        record = membership_to_record(membership)
        updates = {key: record[key] for key in ("user_id", "group_id", "joinet_at", "is_active")}
        return await self._update(membership.id, updates, self.get_membership_by_id)

    async def delete_membership(self, membership_id: str) -> bool:
        return await self._soft_delete(membership_id)


__all__ = ["RobleMembershipRepository"]
