"""Course activities, as the teacher manages them and as each student sees them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Mapping, Set, Tuple, assert_never

from courseven.controllers.base import (
    CurrentUserProvider,
    SessionController,
    with_entry,
    without_entry,
)
from courseven.core.config import RefreshConfig
from courseven.core.events import (
    ActivityChangedEvent,
    AppEvent,
    AppEventBus,
    AssessmentSubmittedEvent,
    EnrollmentJoinedEvent,
    MembershipJoinedEvent,
)
from courseven.core.refresh import RefreshManager
from courseven.core.store import Action, ControllerState
from courseven.domain.models import CourseActivity, utcnow
from courseven.domain.repositories import ActivityRepository
from courseven.domain.usecases.activity import (
    GetCourseActivitiesForStudentUseCase,
    sort_activities,
)

LOGGER = logging.getLogger("courseven.controllers.activity")

ActivityIndex = Mapping[str, Tuple[CourseActivity, ...]]


def student_refresh_key(course_id: str) -> str:
    return f"activities:student:{course_id}"


def _upsert(activities: Iterable[CourseActivity], activity: CourseActivity) -> Tuple[CourseActivity, ...]:
    others = [item for item in activities if item.id != activity.id]
    return tuple(sort_activities([*others, activity]))


def _remove(activities: Iterable[CourseActivity], activity_id: str) -> Tuple[CourseActivity, ...]:
    return tuple(item for item in activities if item.id != activity_id)


def _find(state: "ActivityState", activity_id: str) -> CourseActivity | None:
    for index in (
        state.activities_by_course,
        state.activities_by_category,
        state.student_activities_by_course,
    ):
        for activities in index.values():
            for activity in activities:
                if activity.id == activity_id:
                    return activity
    return None


@dataclass(frozen=True)
class ActivityState(ControllerState):
    activities_by_course: ActivityIndex = field(default_factory=dict)
    activities_by_category: ActivityIndex = field(default_factory=dict)
    student_activities_by_course: ActivityIndex = field(default_factory=dict)
    created_activity: CourseActivity | None = None


@dataclass(frozen=True)
class CourseActivitiesLoaded(Action):
    course_id: str
    activities: Tuple[CourseActivity, ...]


@dataclass(frozen=True)
class CategoryActivitiesLoaded(Action):
    category_id: str
    activities: Tuple[CourseActivity, ...]


@dataclass(frozen=True)
class StudentActivitiesLoaded(Action):
    course_id: str
    activities: Tuple[CourseActivity, ...]


@dataclass(frozen=True)
class ActivityApplied(Action):
    activity: CourseActivity
    created: bool = False


@dataclass(frozen=True)
class ActivityRemoved(Action):
    activity_id: str
    course_id: str
    category_id: str


@dataclass(frozen=True)
class StudentActivitiesDropped(Action):
    course_id: str


@dataclass(frozen=True)
class CreatedActivityCleared(Action):
    pass


def _apply_activity(state: ActivityState, activity: CourseActivity, created: bool) -> ActivityState:
    previous = _find(state, activity.id)
    old_course = previous.course_id if previous is not None else activity.course_id
    old_category = previous.category_id if previous is not None else activity.category_id

    by_course = dict(state.activities_by_course)
    if old_course != activity.course_id:
        by_course[old_course] = _remove(by_course.get(old_course, ()), activity.id)
    by_course[activity.course_id] = _upsert(by_course.get(activity.course_id, ()), activity)

    by_category = dict(state.activities_by_category)
    if old_category != activity.category_id:
        by_category[old_category] = _remove(by_category.get(old_category, ()), activity.id)
    by_category[activity.category_id] = _upsert(by_category.get(activity.category_id, ()), activity)

    # Student lists are only patched when already loaded.
    by_student = dict(state.student_activities_by_course)
    if activity.course_id in by_student:
        by_student[activity.course_id] = _upsert(by_student[activity.course_id], activity)
    if old_course != activity.course_id and old_course in by_student:
        by_student[old_course] = _remove(by_student[old_course], activity.id)

    return replace(
        state,
        activities_by_course=by_course,
        activities_by_category=by_category,
        student_activities_by_course=by_student,
        created_activity=activity if created else state.created_activity,
    )


class ActivityController(SessionController[ActivityState]):
    """Loads activities per course, per category and per student.

    Student lists go through the :class:`RefreshManager` so repeated visits
    inside the TTL reuse the cached list. Joining a group invalidates the
    student list of that group's course.
    """

    def __init__(
        self,
        *,
        activity_repository: ActivityRepository,
        get_course_activities_for_student_use_case: GetCourseActivitiesForStudentUseCase,
        event_bus: AppEventBus,
        refresh_manager: RefreshManager,
        get_current_user_id: CurrentUserProvider,
        refresh_config: RefreshConfig | None = None,
    ) -> None:
        super().__init__(ActivityState(), get_current_user_id)
        self.activities = activity_repository
        self.get_course_activities_for_student = get_course_activities_for_student_use_case
        self.event_bus = event_bus
        self.refresh_manager = refresh_manager
        self.student_ttl_ms = (refresh_config or RefreshConfig()).student_activities_ttl_ms
        self._loading_keys: Set[str] = set()
        self._unsubscribe = event_bus.subscribe(self._on_event)

    def reduce(self, state: ActivityState, action: Action) -> ActivityState:
        match action:
            case CourseActivitiesLoaded(course_id=course_id, activities=activities):
                return replace(
                    state,
                    activities_by_course=with_entry(state.activities_by_course, course_id, activities),
                )
            case CategoryActivitiesLoaded(category_id=category_id, activities=activities):
                return replace(
                    state,
                    activities_by_category=with_entry(
                        state.activities_by_category, category_id, activities
                    ),
                )
            case StudentActivitiesLoaded(course_id=course_id, activities=activities):
                return replace(
                    state,
                    student_activities_by_course=with_entry(
                        state.student_activities_by_course, course_id, activities
                    ),
                )
            case ActivityApplied(activity=activity, created=created):
                return _apply_activity(state, activity, created)
            case ActivityRemoved(activity_id=activity_id, course_id=course_id, category_id=category_id):
                return replace(
                    state,
                    activities_by_course=with_entry(
                        state.activities_by_course,
                        course_id,
                        _remove(state.activities_by_course.get(course_id, ()), activity_id),
                    ),
                    activities_by_category=with_entry(
                        state.activities_by_category,
                        category_id,
                        _remove(state.activities_by_category.get(category_id, ()), activity_id),
                    ),
                    student_activities_by_course=with_entry(
                        state.student_activities_by_course,
                        course_id,
                        _remove(state.student_activities_by_course.get(course_id, ()), activity_id),
                    ),
                )
            case StudentActivitiesDropped(course_id=course_id):
                if course_id not in state.student_activities_by_course:
                    return state
                return replace(
                    state,
                    student_activities_by_course=without_entry(
                        state.student_activities_by_course, course_id
                    ),
                )
            case CreatedActivityCleared():
                return replace(state, created_activity=None)
        return super().reduce(state, action)

    # ------------------------------------------------------------------
    # queries

    def activities_for_course(self, course_id: str) -> Tuple[CourseActivity, ...]:
        return self.get_snapshot().activities_by_course.get(course_id, ())

    def activities_for_category(self, category_id: str) -> Tuple[CourseActivity, ...]:
        return self.get_snapshot().activities_by_category.get(category_id, ())

    def student_activities_for_course(self, course_id: str) -> Tuple[CourseActivity, ...]:
        return self.get_snapshot().student_activities_by_course.get(course_id, ())

    @property
    def created_activity(self) -> CourseActivity | None:
        return self.get_snapshot().created_activity

    # ------------------------------------------------------------------
    # loads

    async def load_by_course(self, course_id: str, *, force: bool = False) -> None:
        if not course_id:
            return
        key = f"course:{course_id}"
        if key in self._loading_keys and not force:
            return
        ticket = self._begin_request(key)
        self._loading_keys.add(key)

        async def load() -> None:
            activities = await self.activities.get_activities_by_course(course_id)
            if self._is_current(key, ticket):
                self.dispatch(CourseActivitiesLoaded(course_id, tuple(sort_activities(activities))))

        try:
            await self._guard(load)
        finally:
            if self._is_current(key, ticket):
                self._loading_keys.discard(key)

    async def load_by_category(self, category_id: str, *, force: bool = False) -> None:
        if not category_id:
            return
        key = f"category:{category_id}"
        if key in self._loading_keys and not force:
            return
        ticket = self._begin_request(key)
        self._loading_keys.add(key)

        async def load() -> None:
            activities = await self.activities.get_activities_by_category(category_id)
            if self._is_current(key, ticket):
                self.dispatch(
                    CategoryActivitiesLoaded(category_id, tuple(sort_activities(activities)))
                )

        try:
            await self._guard(load)
        finally:
            if self._is_current(key, ticket):
                self._loading_keys.discard(key)

    async def load_for_student(self, course_id: str, *, force: bool = False) -> None:
        """Load the activities visible to the current student in ``course_id``.

        Skipped while the previous load is younger than the student TTL unless
        ``force`` is set. Concurrent callers share one in-flight request.
        """
        if not course_id:
            return
        refresh_key = student_refresh_key(course_id)

        async def fetch() -> None:
            ticket = self._begin_request(refresh_key)
            user_id = await self._require_user_id()
            activities = await self.get_course_activities_for_student.execute(course_id, user_id)
            if self._is_current(refresh_key, ticket):
                self.dispatch(StudentActivitiesLoaded(course_id, tuple(activities)))
            else:
                LOGGER.debug("Dropping stale student activities for %s", course_id)

        async def load() -> None:
            await self.refresh_manager.run(
                refresh_key,
                self.student_ttl_ms,
                fetch,
                force=force,
            )

        await self._guard(load)

    async def get_activity_by_id(self, activity_id: str) -> CourseActivity | None:
        cached = _find(self.get_snapshot(), activity_id)
        if cached is not None:
            return cached

        async def fetch() -> CourseActivity | None:
            activity = await self.activities.get_activity_by_id(activity_id)
            if activity is not None:
                self.dispatch(ActivityApplied(activity))
            return activity

        return await self._guard(fetch, track_loading=False, silent=True)

    # ------------------------------------------------------------------
    # mutations

    async def create_activity(
        self,
        *,
        title: str,
        course_id: str,
        category_id: str,
        description: str | None = None,
        due_date: datetime | None = None,
        reviewing: bool = False,
        private_review: bool = False,
    ) -> CourseActivity | None:
        if self.is_loading:
            return None

        async def create() -> CourseActivity:
            user_id = await self._require_user_id()
            draft = CourseActivity(
                id="",
                title=title.strip(),
                description=(description or "").strip(),
                course_id=course_id,
                category_id=category_id,
                created_by=user_id,
                due_date=due_date,
                created_at=utcnow(),
                reviewing=reviewing,
                private_review=private_review,
            )
            created = await self.activities.create_activity(draft)
            self.dispatch(ActivityApplied(created, created=True))
            self._activity_changed(created.course_id, created.id)
            return created

        return await self._guard(create)

    async def update_activity(self, activity: CourseActivity) -> CourseActivity | None:
        async def update() -> CourseActivity:
            updated = await self.activities.update_activity(activity)
            self.dispatch(ActivityApplied(updated))
            self._activity_changed(updated.course_id, updated.id)
            return updated

        return await self._guard(update)

    async def delete_activity(self, *, activity_id: str, course_id: str, category_id: str) -> bool:
        async def delete() -> bool:
            await self.activities.delete_activity(activity_id)
            self.dispatch(ActivityRemoved(activity_id, course_id, category_id))
            self._activity_changed(course_id, activity_id)
            return True

        return bool(await self._guard(delete, failure=False))

    def clear_created_activity(self) -> None:
        self.dispatch(CreatedActivityCleared())

    def invalidate_student_cache(self, course_id: str) -> None:
        self.refresh_manager.invalidate(student_refresh_key(course_id))
        self.dispatch(StudentActivitiesDropped(course_id))

    def close(self) -> None:
        """Stop reacting to events and cancel in-flight student loads."""
        self._unsubscribe()
        cancelled = self.refresh_manager.cancel_prefix(student_refresh_key(""))
        if cancelled:
            LOGGER.debug("Cancelled %d student activity loads", cancelled)

    def _activity_changed(self, course_id: str, activity_id: str) -> None:
        self.invalidate_student_cache(course_id)
        self.event_bus.publish(ActivityChangedEvent(course_id=course_id, activity_id=activity_id))

    def _on_event(self, event: AppEvent) -> None:
        match event:
            case MembershipJoinedEvent(course_id=course_id):
                self.refresh_manager.invalidate(student_refresh_key(course_id))
            case EnrollmentJoinedEvent() | ActivityChangedEvent() | AssessmentSubmittedEvent():
                pass
            case _:
                assert_never(event)


__all__ = ["ActivityController", "ActivityState", "student_refresh_key"]
