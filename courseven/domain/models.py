"""Domain entities and derived peer-review aggregates."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

GroupingMethod = Literal["manual", "random"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Entity(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class User(Entity):
    id: str
    student_id: Optional[str] = None
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username or self.email

    @property
    def identity_ids(self) -> List[str]:
        """Every id the backend may use for this person (user id and auth id)."""
        ids = [self.id]
        if self.student_id and self.student_id != self.id:
            ids.append(self.student_id)
        return ids


class Course(Entity):
    id: str
    name: str
    description: str = ""
    join_code: str
    teacher_id: str
    created_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True


class Category(Entity):
    id: str
    name: str
    description: str = ""
    course_id: str
    teacher_id: str = ""
    grouping_method: GroupingMethod = "manual"
    max_members_per_group: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True


class Group(Entity):
    id: str
    name: str
    category_id: str
    course_id: str
    teacher_id: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True


class Enrollment(Entity):
    id: str
    student_id: str
    course_id: str
    enrolled_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True


class Membership(Entity):
    id: str
    user_id: str
    group_id: str
    joined_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True


class CourseActivity(Entity):
    id: str
    title: str
    description: str = ""
    category_id: str
    course_id: str
    created_by: str = ""
    due_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True
    reviewing: bool = False
    private_review: bool = False

    @property
    def is_public_review(self) -> bool:
        return self.reviewing and not self.private_review


class Assessment(Entity):
    """One peer rating: ``reviewer_id`` rated ``student_id`` on ``activity_id``."""

    id: str
    activity_id: str
    group_id: str = ""
    reviewer_id: str
    student_id: str
    punctuality_score: float
    contributions_score: float
    commitment_score: float
    attitude_score: float
    overall_score_persisted: Optional[float] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def overall(self) -> float:
        return (
            self.punctuality_score
            + self.contributions_score
            + self.commitment_score
            + self.attitude_score
        ) / 4.0


class AssessmentDraft(Entity):
    """Scores a reviewer is about to submit for one peer."""

    activity_id: str
    group_id: str
    reviewer_id: str
    student_id: str
    punctuality_score: int
    contributions_score: int
    commitment_score: int
    attitude_score: int

    @property
    def overall(self) -> float:
        return (
            self.punctuality_score
            + self.contributions_score
            + self.commitment_score
            + self.attitude_score
        ) / 4.0


# ---------------------------------------------------------------------------
# Auth


class AuthTokens(Entity):
    access_token: str
    refresh_token: Optional[str] = None


class AuthSession(Entity):
    user: User
    tokens: AuthTokens


class StoredSession(Entity):
    """A session as persisted locally, with the "keep me signed in" choice."""

    session: AuthSession
    keep_logged_in: bool = False


# ---------------------------------------------------------------------------
# Derived peer-review aggregates (never persisted)


class ScoreAverages(Entity):
    punctuality: float
    contributions: float
    commitment: float
    attitude: float
    overall: float


class StudentActivityReviewStats(Entity):
    student_id: str
    received_count: int
    averages: ScoreAverages


class GroupActivityReviewStats(Entity):
    group_id: str
    averages: ScoreAverages
    students: List[StudentActivityReviewStats] = Field(default_factory=list)


class ActivityPeerReviewSummary(Entity):
    activity_id: str
    activity_averages: Optional[ScoreAverages] = None
    groups: List[GroupActivityReviewStats] = Field(default_factory=list)


class StudentCrossActivityStats(Entity):
    student_id: str
    assessments_received: int
    averages: ScoreAverages


class GroupCrossActivityStats(Entity):
    """Per-group rollup across activities; ``averages`` is ``None`` without evaluations."""

    group_id: str
    assessments_count: int = 0
    averages: Optional[ScoreAverages] = None

    @property
    def has_evaluations(self) -> bool:
        return self.assessments_count > 0 and self.averages is not None


class CoursePeerReviewSummary(Entity):
    activity_ids: List[str] = Field(default_factory=list)
    groups: List[GroupCrossActivityStats] = Field(default_factory=list)
    students: List[StudentCrossActivityStats] = Field(default_factory=list)
    course_averages: Optional[ScoreAverages] = None

    @property
    def student_ids(self) -> List[str]:
        return [student.student_id for student in self.students]

    @property
    def total_assessments(self) -> int:
        return sum(group.assessments_count for group in self.groups)


__all__ = [
    "ActivityPeerReviewSummary",
    "Assessment",
    "AssessmentDraft",
    "AuthSession",
    "AuthTokens",
    "Category",
    "Course",
    "CourseActivity",
    "CoursePeerReviewSummary",
    "Enrollment",
    "Entity",
    "Group",
    "GroupActivityReviewStats",
    "GroupCrossActivityStats",
    "GroupingMethod",
    "Membership",
    "ScoreAverages",
    "StudentActivityReviewStats",
    "StoredSession",
    "StudentCrossActivityStats",
    "User",
    "utcnow",
]
