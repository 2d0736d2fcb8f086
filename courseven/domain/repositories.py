"""Repository contracts consumed by use cases and controllers."""

from __future__ import annotations

from typing import Awaitable, Callable, List, Protocol, Sequence

from courseven.domain.models import (
    Assessment,
    AssessmentDraft,
    Category,
    Course,
    CourseActivity,
    Enrollment,
    Group,
    Membership,
    User,
)

AccessTokenProvider = Callable[[], Awaitable[str | None]]


class UserRepository(Protocol):
    async def get_user_by_id(self, user_id: str) -> User | None: ...

    async def get_user_by_email(self, email: str) -> User | None: ...

    async def get_user_by_student_id(self, student_id: str) -> User | None: ...

    async def get_user_by_username(self, username: str) -> User | None: ...

    async def create_user(self, user: User) -> User: ...


class CourseRepository(Protocol):
    async def get_course_by_id(self, course_id: str) -> Course | None: ...

    async def get_courses_by_teacher(self, teacher_id: str) -> List[Course]: ...

    async def get_course_by_join_code(self, join_code: str) -> Course | None: ...

    async def create_course(self, course: Course) -> Course: ...

    async def update_course(self, course: Course, *, partial: bool = True) -> Course: ...

    async def set_course_active(self, course_id: str, active: bool) -> Course: ...

    async def delete_course(self, course_id: str) -> bool: ...


class CategoryRepository(Protocol):
    async def get_category_by_id(self, category_id: str) -> Category | None: ...

    async def get_categories_by_course(self, course_id: str) -> List[Category]: ...

    async def create_category(self, category: Category) -> Category: ...

    async def update_category(self, category: Category) -> Category: ...

    async def delete_category(self, category_id: str) -> bool: ...


class GroupRepository(Protocol):
    async def get_group_by_id(self, group_id: str) -> Group | None: ...

    async def get_groups_by_course(self, course_id: str) -> List[Group]: ...

    async def get_groups_by_category(self, category_id: str) -> List[Group]: ...

    async def create_group(self, group: Group) -> Group: ...

    async def update_group(self, group: Group) -> Group: ...

    async def delete_group(self, group_id: str) -> bool: ...


class EnrollmentRepository(Protocol):
    async def get_enrollments_by_student(self, student_id: str) -> List[Enrollment]: ...

    async def get_enrollments_by_course(self, course_id: str) -> List[Enrollment]: ...

    async def create_enrollment(self, enrollment: Enrollment) -> Enrollment: ...

    async def update_enrollment(self, enrollment: Enrollment) -> Enrollment: ...

    async def delete_enrollment(self, enrollment_id: str) -> bool: ...

    async def get_enrollment_count_by_course(self, course_id: str) -> int: ...


class MembershipRepository(Protocol):
    async def get_memberships_by_user(self, user_id: str) -> List[Membership]: ...

    async def get_memberships_by_group(self, group_id: str) -> List[Membership]: ...

    async def create_membership(self, membership: Membership) -> Membership: ...

    async def delete_membership(self, membership_id: str) -> bool: ...

    async def is_user_member_of_group(self, user_id: str, group_id: str) -> bool: ...


class ActivityRepository(Protocol):
    async def get_activity_by_id(self, activity_id: str) -> CourseActivity | None: ...

    async def get_activities_by_course(self, course_id: str) -> List[CourseActivity]: ...

    async def get_activities_by_category(self, category_id: str) -> List[CourseActivity]: ...

    async def create_activity(self, activity: CourseActivity) -> CourseActivity: ...

    async def update_activity(self, activity: CourseActivity) -> CourseActivity: ...

    async def delete_activity(self, activity_id: str) -> bool: ...


class AssessmentRepository(Protocol):
    async def get_assessments_by_activity(self, activity_id: str) -> List[Assessment]: ...

    async def get_assessments_by_group(self, group_id: str) -> List[Assessment]: ...

    async def get_assessments_by_reviewer(
        self, activity_id: str, reviewer_id: str
    ) -> List[Assessment]: ...

    async def get_assessments_received_by_student(
        self, activity_id: str, student_id: str
    ) -> List[Assessment]: ...

    async def get_assessments_for_student_across_activities(
        self, activity_ids: Sequence[str], student_id: str
    ) -> List[Assessment]: ...

    async def exists_assessment(
        self, activity_id: str, reviewer_id: str, student_id: str
    ) -> bool: ...

    async def create_assessment(self, draft: AssessmentDraft) -> Assessment: ...

    async def list_pending_peer_ids(
        self,
        activity_id: str,
        reviewer_id: str,
        group_member_ids: Sequence[str],
    ) -> List[str]: ...


__all__ = [
    "AccessTokenProvider",
    "ActivityRepository",
    "AssessmentRepository",
    "CategoryRepository",
    "CourseRepository",
    "EnrollmentRepository",
    "GroupRepository",
    "MembershipRepository",
    "UserRepository",
]
