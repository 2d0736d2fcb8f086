from __future__ import annotations

import logging
from typing import Any, List, Mapping

from courseven.data.records import course_from_record, course_to_record
from courseven.data.repositories.base import RobleRepository
from courseven.domain.models import Course

LOGGER = logging.getLogger("courseven.repositories.courses")


class RobleCourseRepository(RobleRepository[Course]):
    table = "courses"

    def _from_record(self, row: Mapping[str, Any]) -> Course:
        return course_from_record(row)

    async def get_course_by_id(self, course_id: str) -> Course | None:
        return await self._read_one({"_id": course_id})

    async def get_courses_by_teacher(self, teacher_id: str) -> List[Course]:
        return await self._read({"teacher_id": teacher_id})

    async def get_course_by_join_code(self, join_code: str) -> Course | None:
        """Active course holding ``join_code``; inactive courses cannot be joined."""
        courses = await self._read({"join_code": join_code})
        return next((course for course in courses if course.is_active), None)

    async def create_course(self, course: Course) -> Course:
        return await self._insert_one(course_to_record(course))

    async def update_course(self, course: Course, *, partial: bool = True) -> Course:
        updates: dict[str, Any] = {"name": course.name, "description": course.description}
        if not partial:
            updates.update(
                join_code=course.join_code,
                teacher_id=course.teacher_id,
                is_active=course.is_active,
            )
        return await self._update(course.id, updates, self.get_course_by_id)

    async def set_course_active(self, course_id: str, active: bool) -> Course:
        LOGGER.info("Setting course %s active=%s", course_id, active)
        return await self._update(course_id, {"is_active": active}, self.get_course_by_id)

    async def delete_course(self, course_id: str) -> bool:
        return await self._soft_delete(course_id)


__all__ = ["RobleCourseRepository"]
