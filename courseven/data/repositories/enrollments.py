from __future__ import annotations

from typing import Any, List, Mapping

from courseven.core.errors import UnsupportedOperationError, ValidationFailure
from courseven.data.records import enrollment_from_record, enrollment_to_record
from courseven.data.repositories.base import RobleRepository
from courseven.domain.models import Enrollment


class RobleEnrollmentRepository(RobleRepository[Enrollment]):
    table = "enrollments"

    def _from_record(self, row: Mapping[str, Any]) -> Enrollment:
        return enrollment_from_record(row)

    async def get_enrollment_by_id(self, enrollment_id: str) -> Enrollment | None:
        return await self._read_one({"_id": enrollment_id})

    async def get_enrollments_by_student(self, student_id: str) -> List[Enrollment]:
        """Every enrollment row of the student, including inactive ones."""
        return await self._read({"user_id": student_id})

    async def get_enrollments_by_course(self, course_id: str) -> List[Enrollment]:
        enrollments = await self._read({"course_id": course_id})
        return [enrollment for enrollment in enrollments if enrollment.is_active]

    async def is_student_enrolled_in_course(self, student_id: str, course_id: str) -> bool:
        enrollments = await self.get_enrollments_by_course(course_id)
        return any(enrollment.student_id == student_id for enrollment in enrollments)

    async def get_enrollment_count_by_course(self, course_id: str) -> int:
        return len(await self.get_enrollments_by_course(course_id))

    async def create_enrollment(self, enrollment: Enrollment) -> Enrollment:
        record = enrollment_to_record(enrollment)
        record.setdefault("status", "active")
        return await self._insert_one(record)

    async def update_enrollment(self, enrollment: Enrollment) -> Enrollment:
        if not enrollment.id:
            raise ValidationFailure("update_enrollment requires an enrollment id")
        record = enrollment_to_record(enrollment)
        updates = {key: record[key] for key in ("user_id", "course_id", "enrolled_at", "is_active")}
        return await self._update(enrollment.id, updates, self.get_enrollment_by_id)

    async def delete_enrollment(self, enrollment_id: str) -> bool:
        raise UnsupportedOperationError("EnrollmentRepository.delete_enrollment")


__all__ = ["RobleEnrollmentRepository"]
