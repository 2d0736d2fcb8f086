from __future__ import annotations

import time
from typing import Callable

from courseven.core.errors import ValidationFailure
from courseven.domain.models import Course
from courseven.domain.repositories import CourseRepository

JOIN_CODE_LENGTH = 6
MAX_COURSES_PER_TEACHER = 3
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding expects a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def make_join_code(timestamp_ms: int) -> str:
    """Six-character code from the clock: last six base36 digits, zero padded."""
    code = to_base36(timestamp_ms)
    if len(code) >= JOIN_CODE_LENGTH:
        return code[-JOIN_CODE_LENGTH:]
    return code.rjust(JOIN_CODE_LENGTH, "0")


class CreateCourseUseCase:
    def __init__(
        self,
        repository: CourseRepository,
        *,
        max_courses_per_teacher: int = MAX_COURSES_PER_TEACHER,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.repository = repository
        self.max_courses_per_teacher = max_courses_per_teacher
        self._clock = clock

    async def execute(self, name: str, description: str, teacher_id: str) -> Course:
        name = name.strip()
        if not name:
            raise ValidationFailure("Course name is required")
        existing = await self.repository.get_courses_by_teacher(teacher_id)
        if len(existing) >= self.max_courses_per_teacher:
            raise ValidationFailure(
                f"You reached the limit of {self.max_courses_per_teacher} courses as a teacher."
            )
        course = Course(
            id="",
            name=name,
            description=description.strip(),
            join_code=make_join_code(int(self._clock() * 1000)),
            teacher_id=teacher_id,
        )
        return await self.repository.create_course(course)


__all__ = [
    "CreateCourseUseCase",
    "JOIN_CODE_LENGTH",
    "MAX_COURSES_PER_TEACHER",
    "make_join_code",
    "to_base36",
]
