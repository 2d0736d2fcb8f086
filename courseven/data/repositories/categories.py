from __future__ import annotations

from typing import Any, List, Mapping

from courseven.data.records import category_from_record, category_to_record
from courseven.data.repositories.base import RobleRepository
from courseven.domain.models import Category


class RobleCategoryRepository(RobleRepository[Category]):
    table = "categories"

    def _from_record(self, row: Mapping[str, Any]) -> Category:
        return category_from_record(row)

    async def get_category_by_id(self, category_id: str) -> Category | None:
        return await self._read_one({"_id": category_id})

    async def get_categories_by_course(self, course_id: str) -> List[Category]:
        return await self._read({"course_id": course_id, "is_active": True})

    async def get_categories_by_teacher(self, teacher_id: str) -> List[Category]:
        return await self._read({"teacher_id": teacher_id, "is_active": True})

    async def create_category(self, category: Category) -> Category:
        return await self._insert_one(category_to_record(category))

    async def update_category(self, category: Category) -> Category:
        record = category_to_record(category)
        updates = {key: record[key] for key in record if key not in ("_id", "created_at")}
        return await self._update(category.id, updates, self.get_category_by_id)

    async def delete_category(self, category_id: str) -> bool:
        return await self._soft_delete(category_id)


__all__ = ["RobleCategoryRepository"]
