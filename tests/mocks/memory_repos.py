"""In-memory repositories for use-case tests that do not need HTTP."""

from __future__ import annotations

import itertools
from typing import Dict, List, Sequence

from courseven.domain.models import (
    Assessment,
    AssessmentDraft,
    Category,
    Course,
    CourseActivity,
    Enrollment,
    Group,
    Membership,
)

_ids = itertools.count(1)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


class MemoryCourseRepository:
    def __init__(self, *courses: Course) -> None:
        self.rows: Dict[str, Course] = {course.id: course for course in courses}

    async def get_course_by_id(self, course_id: str) -> Course | None:
        return self.rows.get(course_id)

    async def get_courses_by_teacher(self, teacher_id: str) -> List[Course]:
        return [course for course in self.rows.values() if course.teacher_id == teacher_id]

    async def get_course_by_join_code(self, join_code: str) -> Course | None:
        return next(
            (c for c in self.rows.values() if c.join_code == join_code and c.is_active), None
        )

    async def create_course(self, course: Course) -> Course:
        stored = course.model_copy(update={"id": _new_id("course")})
        self.rows[stored.id] = stored
        return stored


class MemoryEnrollmentRepository:
    def __init__(self, *enrollments: Enrollment) -> None:
        self.rows: List[Enrollment] = list(enrollments)

    async def get_enrollments_by_student(self, student_id: str) -> List[Enrollment]:
        return [row for row in self.rows if row.student_id == student_id]

    async def create_enrollment(self, enrollment: Enrollment) -> Enrollment:
        stored = enrollment.model_copy(update={"id": _new_id("enrollment")})
        self.rows.append(stored)
        return stored

    async def update_enrollment(self, enrollment: Enrollment) -> Enrollment:
        self.rows = [enrollment if row.id == enrollment.id else row for row in self.rows]
        return enrollment


class MemoryCategoryRepository:
    def __init__(self, *categories: Category) -> None:
        self.rows: Dict[str, Category] = {category.id: category for category in categories}

    async def get_category_by_id(self, category_id: str) -> Category | None:
        return self.rows.get(category_id)

    async def create_category(self, category: Category) -> Category:
        stored = category.model_copy(update={"id": _new_id("category")})
        self.rows[stored.id] = stored
        return stored


class MemoryGroupRepository:
    def __init__(self, *groups: Group) -> None:
        self.rows: Dict[str, Group] = {group.id: group for group in groups}

    async def get_group_by_id(self, group_id: str) -> Group | None:
        return self.rows.get(group_id)

    async def get_groups_by_course(self, course_id: str) -> List[Group]:
        return [group for group in self.rows.values() if group.course_id == course_id]

    async def create_group(self, group: Group) -> Group:
        stored = group.model_copy(update={"id": _new_id("group")})
        self.rows[stored.id] = stored
        return stored


class MemoryMembershipRepository:
    def __init__(self, *memberships: Membership) -> None:
        self.rows: List[Membership] = list(memberships)

    async def get_memberships_by_user(self, user_id: str) -> List[Membership]:
        return [row for row in self.rows if row.user_id == user_id]

    async def get_memberships_by_group(self, group_id: str) -> List[Membership]:
        return [row for row in self.rows if row.group_id == group_id]

    async def is_user_member_of_group(self, user_id: str, group_id: str) -> bool:
        return any(row.user_id == user_id and row.group_id == group_id for row in self.rows)

    async def create_membership(self, membership: Membership) -> Membership:
        stored = membership.model_copy(update={"id": _new_id("membership")})
        self.rows.append(stored)
        return stored


class MemoryActivityRepository:
    def __init__(self, *activities: CourseActivity) -> None:
        self.rows: List[CourseActivity] = list(activities)

    async def get_activities_by_course(self, course_id: str) -> List[CourseActivity]:
        return [row for row in self.rows if row.course_id == course_id and row.is_active]


class MemoryAssessmentRepository:
    def __init__(self, *assessments: Assessment) -> None:
        self.rows: List[Assessment] = list(assessments)

    async def get_assessments_by_activity(self, activity_id: str) -> List[Assessment]:
        return [row for row in self.rows if row.activity_id == activity_id]

    async def get_assessments_by_reviewer(self, activity_id: str, reviewer_id: str) -> List[Assessment]:
        return [
            row
            for row in self.rows
            if row.activity_id == activity_id and row.reviewer_id == reviewer_id
        ]

    async def exists_assessment(self, activity_id: str, reviewer_id: str, student_id: str) -> bool:
        return any(
            row.student_id == student_id
            for row in await self.get_assessments_by_reviewer(activity_id, reviewer_id)
        )

    async def create_assessment(self, draft: AssessmentDraft) -> Assessment:
        stored = Assessment(
            id=_new_id("assessment"),
            activity_id=draft.activity_id,
            group_id=draft.group_id,
            reviewer_id=draft.reviewer_id,
            student_id=draft.student_id,
            punctuality_score=draft.punctuality_score,
            contributions_score=draft.contributions_score,
            commitment_score=draft.commitment_score,
            attitude_score=draft.attitude_score,
        )
        self.rows.append(stored)
        return stored

    async def list_pending_peer_ids(
        self, activity_id: str, reviewer_id: str, group_member_ids: Sequence[str]
    ) -> List[str]:
        done = {row.student_id for row in await self.get_assessments_by_reviewer(activity_id, reviewer_id)}
        return [
            member
            for member in dict.fromkeys(group_member_ids)
            if member != reviewer_id and member not in done
        ]


__all__ = [
    "MemoryActivityRepository",
    "MemoryAssessmentRepository",
    "MemoryCategoryRepository",
    "MemoryCourseRepository",
    "MemoryEnrollmentRepository",
    "MemoryGroupRepository",
    "MemoryMembershipRepository",
]
