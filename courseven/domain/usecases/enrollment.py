from __future__ import annotations

import logging
from typing import List

from courseven.core.errors import ValidationFailure
from courseven.domain.models import Enrollment, utcnow
from courseven.domain.repositories import CourseRepository, EnrollmentRepository

LOGGER = logging.getLogger("courseven.usecases.enrollment")


class EnrollToCourseUseCase:
    """Join a course by its join code, reactivating a previous enrollment if any."""

    def __init__(
        self,
        enrollment_repository: EnrollmentRepository,
        course_repository: CourseRepository,
    ) -> None:
        self.enrollments = enrollment_repository
        self.courses = course_repository

    async def execute(self, user_id: str, join_code: str) -> Enrollment:
        course = await self.courses.get_course_by_join_code(join_code.strip())
        if course is None:
            raise ValidationFailure("Invalid join code")
        if course.teacher_id == user_id:
            raise ValidationFailure("You cannot enroll as a student in your own course")

        mine = await self.enrollments.get_enrollments_by_student(user_id)
        existing = next((item for item in mine if item.course_id == course.id), None)
        if existing is not None and existing.is_active:
            raise ValidationFailure("You are already enrolled in this course")
        if existing is not None:
            LOGGER.info("Reactivating enrollment %s", existing.id, extra={"course_id": course.id})
            return await self.enrollments.update_enrollment(
                existing.model_copy(update={"is_active": True, "enrolled_at": utcnow()})
            )

        enrollment = Enrollment(id="", student_id=user_id, course_id=course.id)
        return await self.enrollments.create_enrollment(enrollment)


class GetMyEnrollmentsUseCase:
    def __init__(self, enrollment_repository: EnrollmentRepository) -> None:
        self.enrollments = enrollment_repository

    async def execute(self, user_id: str) -> List[Enrollment]:
        return await self.enrollments.get_enrollments_by_student(user_id)


__all__ = ["EnrollToCourseUseCase", "GetMyEnrollmentsUseCase"]
