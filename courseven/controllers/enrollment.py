"""Student enrollments plus the per-course rosters and counts teachers see."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Mapping, Tuple

from courseven.controllers.base import CurrentUserProvider, SessionController, with_entry
from courseven.core.events import AppEventBus, EnrollmentJoinedEvent
from courseven.core.store import Action, ControllerState
from courseven.domain.models import Course, Enrollment, User
from courseven.domain.repositories import CourseRepository, EnrollmentRepository, UserRepository
from courseven.domain.usecases.enrollment import EnrollToCourseUseCase, GetMyEnrollmentsUseCase

LOGGER = logging.getLogger("courseven.controllers.enrollment")

MINE_KEY = "mine"
UNKNOWN_COURSE_TITLE = "Course"
UNNAMED_USER = "Unnamed"


@dataclass(frozen=True)
class EnrollmentState(ControllerState):
    my_enrollments: Tuple[Enrollment, ...] = ()
    enrollment_counts: Mapping[str, int] = field(default_factory=dict)
    enrollments_by_course: Mapping[str, Tuple[Enrollment, ...]] = field(default_factory=dict)
    loading_course_ids: FrozenSet[str] = frozenset()
    loading_count_course_ids: FrozenSet[str] = frozenset()
    # Bumped when cached course titles change outside of a load.
    titles_version: int = 0


@dataclass(frozen=True)
class MyEnrollmentsLoaded(Action):
    enrollments: Tuple[Enrollment, ...]


@dataclass(frozen=True)
class CourseEnrollmentsLoaded(Action):
    course_id: str
    enrollments: Tuple[Enrollment, ...]


@dataclass(frozen=True)
class EnrollmentCountLoaded(Action):
    course_id: str
    count: int


@dataclass(frozen=True)
class CourseLoadingChanged(Action):
    course_ids: FrozenSet[str]
    count_course_ids: FrozenSet[str]


@dataclass(frozen=True)
class CourseTitlesChanged(Action):
    pass


def _full_name(user: User) -> str:
    return " ".join(part for part in (user.first_name, user.last_name) if part.strip())


class EnrollmentController(SessionController[EnrollmentState]):
    def __init__(
        self,
        *,
        enroll_to_course_use_case: EnrollToCourseUseCase,
        get_my_enrollments_use_case: GetMyEnrollmentsUseCase,
        enrollment_repository: EnrollmentRepository,
        course_repository: CourseRepository,
        user_repository: UserRepository,
        event_bus: AppEventBus,
        get_current_user_id: CurrentUserProvider,
    ) -> None:
        super().__init__(EnrollmentState(), get_current_user_id)
        self.enroll_to_course_use_case = enroll_to_course_use_case
        self.get_my_enrollments_use_case = get_my_enrollments_use_case
        self.enrollments = enrollment_repository
        self.courses = course_repository
        self.users = user_repository
        self.event_bus = event_bus
        self._courses_by_id: Dict[str, Course] = {}
        self._users_by_id: Dict[str, User] = {}
        self._loading_course_ids: set[str] = set()
        self._loading_count_course_ids: set[str] = set()

    def reduce(self, state: EnrollmentState, action: Action) -> EnrollmentState:
        match action:
            case MyEnrollmentsLoaded(enrollments=enrollments):
                return replace(state, my_enrollments=enrollments)
            case CourseEnrollmentsLoaded(course_id=course_id, enrollments=enrollments):
                return replace(
                    state,
                    enrollments_by_course=with_entry(
                        state.enrollments_by_course, course_id, enrollments
                    ),
                    enrollment_counts=with_entry(
                        state.enrollment_counts, course_id, len(enrollments)
                    ),
                )
            case EnrollmentCountLoaded(course_id=course_id, count=count):
                return replace(
                    state, enrollment_counts=with_entry(state.enrollment_counts, course_id, count)
                )
            case CourseLoadingChanged(course_ids=course_ids, count_course_ids=count_course_ids):
                return replace(
                    state,
                    loading_course_ids=course_ids,
                    loading_count_course_ids=count_course_ids,
                )
            case CourseTitlesChanged():
                return replace(state, titles_version=state.titles_version + 1)
        return super().reduce(state, action)

    # ------------------------------------------------------------------
    # queries

    @property
    def my_enrollments(self) -> Tuple[Enrollment, ...]:
        return self.get_snapshot().my_enrollments

    def enrollments_for(self, course_id: str) -> Tuple[Enrollment, ...]:
        return self.get_snapshot().enrollments_by_course.get(course_id, ())

    def enrollment_count_for(self, course_id: str) -> int:
        return self.get_snapshot().enrollment_counts.get(course_id, 0)

    def is_loading_course(self, course_id: str) -> bool:
        return course_id in self.get_snapshot().loading_course_ids

    def is_loading_count(self, course_id: str) -> bool:
        return course_id in self.get_snapshot().loading_count_course_ids

    def course_title(self, course_id: str) -> str:
        course = self._courses_by_id.get(course_id)
        return course.name if course is not None else UNKNOWN_COURSE_TITLE

    def course_teacher_name(self, course_id: str) -> str:
        course = self._courses_by_id.get(course_id)
        if course is None:
            return ""
        teacher = self._users_by_id.get(course.teacher_id)
        return _full_name(teacher) if teacher is not None else ""

    def is_course_active(self, course_id: str) -> bool | None:
        course = self._courses_by_id.get(course_id)
        return course.is_active if course is not None else None

    def user_name(self, user_id: str) -> str:
        user = self._users_by_id.get(user_id)
        name = _full_name(user) if user is not None else ""
        return name or user_id or UNNAMED_USER

    def user_email(self, user_id: str) -> str:
        user = self._users_by_id.get(user_id)
        return user.email if user is not None else ""

    def cached_user(self, user_id: str) -> User | None:
        return self._users_by_id.get(user_id)

    def override_course_title(self, course_id: str, title: str) -> None:
        course = self._courses_by_id.get(course_id)
        if course is None:
            return
        self._courses_by_id[course_id] = course.model_copy(update={"name": title})
        self.dispatch(CourseTitlesChanged())

    # ------------------------------------------------------------------
    # loads

    async def load_my_enrollments(self, *, force: bool = False) -> None:
        if self.is_loading and not force:
            return
        user_id = await self._get_current_user_id()
        if not user_id:
            return
        ticket = self._begin_request(MINE_KEY)

        async def load() -> None:
            enrollments = await self.get_my_enrollments_use_case.execute(user_id)
            if not self._is_current(MINE_KEY, ticket):
                LOGGER.debug("Dropping stale enrollment list")
                return
            self.dispatch(MyEnrollmentsLoaded(tuple(enrollments)))
            await asyncio.gather(
                *(self._load_course_and_teacher(item.course_id) for item in enrollments)
            )

        await self._guard(load)

    async def join_by_code(self, join_code: str) -> Enrollment | None:
        async def join() -> Enrollment:
            user_id = await self._require_user_id()
            enrollment = await self.enroll_to_course_use_case.execute(user_id, join_code.strip())
            await self.load_my_enrollments(force=True)
            self.event_bus.publish(EnrollmentJoinedEvent(course_id=enrollment.course_id))
            return enrollment

        return await self._guard(join)

    async def load_enrollments_for_course(self, course_id: str, *, force: bool = False) -> None:
        if not course_id:
            return
        if not force and course_id in self.get_snapshot().enrollments_by_course:
            return
        if course_id in self._loading_course_ids:
            return
        self._loading_course_ids.add(course_id)
        self._sync_loading_sets()

        async def load() -> None:
            enrollments = await self.enrollments.get_enrollments_by_course(course_id)
            self.dispatch(CourseEnrollmentsLoaded(course_id, tuple(enrollments)))
            await asyncio.gather(*(self.ensure_user_loaded(item.student_id) for item in enrollments))

        try:
            await self._guard(load, track_loading=False)
        finally:
            self._loading_course_ids.discard(course_id)
            self._sync_loading_sets()

    async def load_enrollment_count_for_course(
        self, course_id: str, *, force: bool = False
    ) -> None:
        if not course_id:
            return
        if not force and course_id in self.get_snapshot().enrollment_counts:
            return
        if course_id in self._loading_count_course_ids:
            return
        self._loading_count_course_ids.add(course_id)
        self._sync_loading_sets()

        async def load() -> None:
            count = await self.enrollments.get_enrollment_count_by_course(course_id)
            self.dispatch(EnrollmentCountLoaded(course_id, count))

        try:
            await self._guard(load, track_loading=False)
        finally:
            self._loading_count_course_ids.discard(course_id)
            self._sync_loading_sets()

    async def ensure_user_loaded(self, user_id: str) -> User | None:
        if not user_id:
            return None
        cached = self._users_by_id.get(user_id)
        if cached is not None:
            return cached

        async def fetch() -> User | None:
            user = await self.users.get_user_by_id(user_id)
            if user is not None:
                self._users_by_id[user_id] = user
            return user

        return await self._guard(fetch, track_loading=False, silent=True)

    async def _ensure_course_loaded(self, course_id: str) -> Course | None:
        if not course_id:
            return None
        cached = self._courses_by_id.get(course_id)
        if cached is not None:
            return cached

        async def fetch() -> Course | None:
            course = await self.courses.get_course_by_id(course_id)
            if course is not None:
                self._courses_by_id[course_id] = course
            return course

        return await self._guard(fetch, track_loading=False, silent=True)

    async def _load_course_and_teacher(self, course_id: str) -> None:
        course = await self._ensure_course_loaded(course_id)
        if course is not None:
            await self.ensure_user_loaded(course.teacher_id)

    def _sync_loading_sets(self) -> None:
        self.dispatch(
            CourseLoadingChanged(
                frozenset(self._loading_course_ids),
                frozenset(self._loading_count_course_ids),
            )
        )


__all__ = ["EnrollmentController", "EnrollmentState"]
