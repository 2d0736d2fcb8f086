from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Set, Tuple

from courseven.domain.models import CourseActivity
from courseven.domain.repositories import (
    ActivityRepository,
    GroupRepository,
    MembershipRepository,
)


def _sort_key(activity: CourseActivity) -> Tuple[float, str]:
    moment: datetime | None = activity.due_date or activity.created_at
    return (moment.timestamp() if moment is not None else float("inf"), activity.title)


def sort_activities(activities: Iterable[CourseActivity]) -> List[CourseActivity]:
    """Earliest due date first; undated activities fall back to their creation date."""
    return sorted(activities, key=_sort_key)


class GetCourseActivitiesForStudentUseCase:
    """Activities a student sees: those of categories where they hold a group.

    Ordered by due date, or creation date for activities without one.
    """

    def __init__(
        self,
        activity_repository: ActivityRepository,
        membership_repository: MembershipRepository,
        group_repository: GroupRepository,
    ) -> None:
        self.activities = activity_repository
        self.memberships = membership_repository
        self.groups = group_repository

    async def execute(self, course_id: str, user_id: str) -> List[CourseActivity]:
        activities = await self.activities.get_activities_by_course(course_id)
        if not activities:
            return []
        memberships = await self.memberships.get_memberships_by_user(user_id)
        if not memberships:
            return []

        category_ids: Set[str] = set()
        for membership in memberships:
            group = await self.groups.get_group_by_id(membership.group_id)
            if group is not None and group.course_id == course_id:
                category_ids.add(group.category_id)
        if not category_ids:
            return []

        visible = [activity for activity in activities if activity.category_id in category_ids]
        return sort_activities(visible)


__all__ = ["GetCourseActivitiesForStudentUseCase", "sort_activities"]
