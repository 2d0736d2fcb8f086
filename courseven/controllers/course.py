from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, Tuple

from courseven.controllers.base import CurrentUserProvider, SessionController
from courseven.core.errors import ValidationFailure
from courseven.core.store import Action, ControllerState, ErrorRaised
from courseven.domain.models import Course
from courseven.domain.repositories import CourseRepository
from courseven.domain.usecases.course import CreateCourseUseCase

if TYPE_CHECKING:
    from courseven.controllers.enrollment import EnrollmentController

LOGGER = logging.getLogger("courseven.controllers.course")

TEACHING_KEY = "teaching"


@dataclass(frozen=True)
class CourseState(ControllerState):
    teacher_courses: Tuple[Course, ...] = ()
    created_course: Course | None = None


@dataclass(frozen=True)
class TeacherCoursesLoaded(Action):
    courses: Tuple[Course, ...]


@dataclass(frozen=True)
class CourseCreated(Action):
    course: Course


@dataclass(frozen=True)
class CourseChanged(Action):
    course: Course


@dataclass(frozen=True)
class CourseRemoved(Action):
    course_id: str


@dataclass(frozen=True)
class CreatedCourseCleared(Action):
    pass


class CourseController(SessionController[CourseState]):
    """Courses taught by the signed-in user."""

    def __init__(
        self,
        *,
        create_course_use_case: CreateCourseUseCase,
        course_repository: CourseRepository,
        get_current_user_id: CurrentUserProvider,
        enrollment_controller: "EnrollmentController | None" = None,
    ) -> None:
        super().__init__(CourseState(), get_current_user_id)
        self.create_course_use_case = create_course_use_case
        self.courses = course_repository
        self.enrollment_controller = enrollment_controller
        self._courses_by_id: Dict[str, Course] = {}

    def reduce(self, state: CourseState, action: Action) -> CourseState:
        match action:
            case TeacherCoursesLoaded(courses=courses):
                return replace(state, teacher_courses=courses)
            case CourseCreated(course=course):
                return replace(state, created_course=course)
            case CourseChanged(course=course):
                return replace(
                    state,
                    teacher_courses=tuple(
                        course if item.id == course.id else item for item in state.teacher_courses
                    ),
                )
            case CourseRemoved(course_id=course_id):
                return replace(
                    state,
                    teacher_courses=tuple(
                        item for item in state.teacher_courses if item.id != course_id
                    ),
                )
            case CreatedCourseCleared():
                return replace(state, created_course=None)
        return super().reduce(state, action)

    @property
    def teacher_courses(self) -> Tuple[Course, ...]:
        return self.get_snapshot().teacher_courses

    @property
    def max_courses_per_teacher(self) -> int:
        return self.create_course_use_case.max_courses_per_teacher

    async def load_my_teaching_courses(self, *, force: bool = False) -> None:
        teacher_id = await self._get_current_user_id()
        if not teacher_id:
            return
        if self.is_loading and not force:
            return
        ticket = self._begin_request(TEACHING_KEY)

        async def load() -> None:
            courses = await self.courses.get_courses_by_teacher(teacher_id)
            if not self._is_current(TEACHING_KEY, ticket):
                LOGGER.debug("Dropping stale teaching course list")
                return
            self._courses_by_id = {course.id: course for course in courses}
            self.dispatch(TeacherCoursesLoaded(tuple(courses)))

        await self._guard(load)

    async def can_create_more_courses(self) -> bool:
        async def check() -> bool:
            teacher_id = await self._get_current_user_id()
            if not teacher_id:
                return False
            existing = await self.courses.get_courses_by_teacher(teacher_id)
            return len(existing) < self.max_courses_per_teacher

        return bool(await self._guard(check, failure=False, track_loading=False, silent=True))

    async def get_course_by_id(self, course_id: str) -> Course | None:
        cached = self._courses_by_id.get(course_id)
        if cached is not None:
            return cached

        async def fetch() -> Course | None:
            course = await self.courses.get_course_by_id(course_id)
            if course is not None:
                self._courses_by_id[course.id] = course
            return course

        return await self._guard(fetch, track_loading=False, silent=True)

    async def create_course(self, name: str, description: str = "") -> Course | None:
        if self.is_loading:
            return None

        async def create() -> Course:
            teacher_id = await self._require_user_id()
            course = await self.create_course_use_case.execute(name, description, teacher_id)
            self._courses_by_id[course.id] = course
            await self.load_my_teaching_courses(force=True)
            self.dispatch(CourseCreated(course))
            LOGGER.info("Course created", extra={"course_id": course.id})
            return course

        return await self._guard(create)

    async def update_course(self, course: Course) -> Course | None:
        async def update() -> Course:
            teacher_id = await self._get_current_user_id()
            if not teacher_id or teacher_id != course.teacher_id:
                raise ValidationFailure("You do not have permission to edit this course")
            updated = await self.courses.update_course(course, partial=True)
            self._course_changed(updated)
            return updated

        return await self._guard(update)

    async def delete_course(self, course_id: str) -> bool:
        course = await self.get_course_by_id(course_id)
        teacher_id = await self._get_current_user_id()
        if course is None or not teacher_id or course.teacher_id != teacher_id:
            self.dispatch(ErrorRaised("You do not have permission to delete this course"))
            return False

        async def delete() -> bool:
            deleted = await self.courses.delete_course(course_id)
            if deleted:
                self._courses_by_id.pop(course_id, None)
                self.dispatch(CourseRemoved(course_id))
            return deleted

        return bool(await self._guard(delete, failure=False))

    async def set_course_active(self, course_id: str, active: bool) -> Course | None:
        teacher_id = await self._get_current_user_id()
        course = await self.get_course_by_id(course_id)
        if course is None or not teacher_id or course.teacher_id != teacher_id:
            self.dispatch(ErrorRaised("You cannot modify this course"))
            return None
        if active:
            active_count = sum(1 for item in self.teacher_courses if item.is_active)
            if active_count >= self.max_courses_per_teacher:
                self.dispatch(
                    ErrorRaised(
                        f"You already have {active_count} active courses "
                        f"(max {self.max_courses_per_teacher}). Disable another one first."
                    )
                )
                return None

        async def toggle() -> Course:
            updated = await self.courses.set_course_active(course_id, active)
            self._course_changed(updated)
            await self.load_my_teaching_courses(force=True)
            return updated

        return await self._guard(toggle)

    async def ensure_course_active(self, course_id: str, entity_label: str) -> bool:
        """False, with an error set, when the course exists but is disabled."""
        course = await self.get_course_by_id(course_id)
        if course is not None and not course.is_active:
            self.dispatch(ErrorRaised(f"Enable the course before creating {entity_label}"))
            return False
        return True

    def clear_created_course(self) -> None:
        self.dispatch(CreatedCourseCleared())

    def _course_changed(self, course: Course) -> None:
        self._courses_by_id[course.id] = course
        self.dispatch(CourseChanged(course))
        if self.enrollment_controller is not None:
            self.enrollment_controller.override_course_title(course.id, course.name)


__all__ = ["CourseController", "CourseState"]
