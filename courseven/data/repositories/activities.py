from __future__ import annotations

from typing import Any, List, Mapping

from courseven.data.records import activity_from_record, activity_to_record
from courseven.data.repositories.base import RobleRepository
from courseven.domain.models import CourseActivity


class RobleActivityRepository(RobleRepository[CourseActivity]):
    table = "activities"

    def _from_record(self, row: Mapping[str, Any]) -> CourseActivity:
        return activity_from_record(row)

    async def get_activity_by_id(self, activity_id: str) -> CourseActivity | None:
        return await self._read_one({"_id": activity_id, "is_active": True})

    async def get_activities_by_course(self, course_id: str) -> List[CourseActivity]:
        activities = await self._read({"course_id": course_id})
        return [activity for activity in activities if activity.is_active]

    async def get_activities_by_category(self, category_id: str) -> List[CourseActivity]:
        return await self._read({"category_id": category_id, "is_active": True})

    async def create_activity(self, activity: CourseActivity) -> CourseActivity:
        return await self._insert_one(activity_to_record(activity))

    async def update_activity(self, activity: CourseActivity) -> CourseActivity:
        record = activity_to_record(activity)
        updates = {key: record[key] for key in record if key not in ("_id", "created_at")}
        return await self._update(activity.id, updates, self.get_activity_by_id)

    async def delete_activity(self, activity_id: str) -> bool:
        return await self._soft_delete(activity_id)


__all__ = ["RobleActivityRepository"]
