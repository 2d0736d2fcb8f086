from __future__ import annotations

from typing import Any, List, Mapping

from courseven.data.records import group_from_record, group_to_record
from courseven.data.repositories.base import RobleRepository
from courseven.domain.models import Group


class RobleGroupRepository(RobleRepository[Group]):
    table = "groups"

    def _from_record(self, row: Mapping[str, Any]) -> Group:
        return group_from_record(row)

    async def get_group_by_id(self, group_id: str) -> Group | None:
        return await self._read_one({"_id": group_id, "is_active": True})

    async def get_groups_by_course(self, course_id: str) -> List[Group]:
        return await self._read({"course_id": course_id, "is_active": True})

    async def get_groups_by_category(self, category_id: str) -> List[Group]:
        return await self._read({"category_id": category_id, "is_active": True})

    async def is_group_name_available(self, name: str, course_id: str) -> bool:
        existing = await self._read({"name": name, "course_id": course_id, "is_active": True})
        return not existing

    async def create_group(self, group: Group) -> Group:
        return await self._insert_one(group_to_record(group))

    async def update_group(self, group: Group) -> Group:
        updates = {
            "name": group.name,
            "category_id": group.category_id,
            "course_id": group.course_id,
            "teacher_id": group.teacher_id,
            "is_active": group.is_active,
        }
        return await self._update(group.id, updates, self.get_group_by_id)

    async def delete_group(self, group_id: str) -> bool:
        return await self._soft_delete(group_id)


__all__ = ["RobleGroupRepository"]
