"""Peer-review use cases: summaries, submission, and pending peers."""

from __future__ import annotations

import logging
from typing import List, Sequence

from courseven.core.errors import DuplicateAssessmentError, ValidationFailure
from courseven.domain.models import (
    ActivityPeerReviewSummary,
    Assessment,
    AssessmentDraft,
    CoursePeerReviewSummary,
)
from courseven.domain.peer_review import (
    build_activity_summary,
    build_course_summary,
    select_review_activity_ids,
)
from courseven.domain.repositories import (
    ActivityRepository,
    AssessmentRepository,
    GroupRepository,
    MembershipRepository,
)

LOGGER = logging.getLogger("courseven.usecases.peer_review")

MIN_SCORE = 1
MAX_SCORE = 5


class ComputeCourseSummaryUseCase:
    def __init__(self, repository: AssessmentRepository) -> None:
        self.repository = repository

    async def execute(
        self,
        activity_ids: Sequence[str],
        group_ids: Sequence[str] | None = None,
    ) -> CoursePeerReviewSummary:
        assessments: List[Assessment] = []
        for activity_id in activity_ids:
            assessments.extend(await self.repository.get_assessments_by_activity(activity_id))
        return build_course_summary(activity_ids, assessments, group_ids)


class ComputeActivitySummaryUseCase:
    def __init__(self, repository: AssessmentRepository) -> None:
        self.repository = repository

    async def execute(self, activity_id: str) -> ActivityPeerReviewSummary:
        assessments = await self.repository.get_assessments_by_activity(activity_id)
        return build_activity_summary(activity_id, assessments)


class LoadCoursePeerReviewUseCase:
    """Course summary over every activity whose reviews are public.

    Every active group of the course is listed, with or without evaluations.
    """

    def __init__(
        self,
        activity_repository: ActivityRepository,
        group_repository: GroupRepository,
        assessment_repository: AssessmentRepository,
    ) -> None:
        self.activities = activity_repository
        self.groups = group_repository
        self.compute = ComputeCourseSummaryUseCase(assessment_repository)

    async def execute(self, course_id: str) -> CoursePeerReviewSummary:
        activities = await self.activities.get_activities_by_course(course_id)
        groups = await self.groups.get_groups_by_course(course_id)
        activity_ids = select_review_activity_ids(activities)
        return await self.compute.execute(activity_ids, [group.id for group in groups])


def validate_score(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationFailure(f"{name} must be a number between {MIN_SCORE} and {MAX_SCORE}")
    if value != int(value) or not MIN_SCORE <= value <= MAX_SCORE:
        raise ValidationFailure(f"{name} must be a whole number between {MIN_SCORE} and {MAX_SCORE}")
    return int(value)


class SubmitAssessmentUseCase:
    """Record one reviewer's rating of one peer for an activity (once only)."""

    def __init__(self, repository: AssessmentRepository) -> None:
        self.repository = repository

    async def execute(
        self,
        *,
        activity_id: str,
        group_id: str,
        reviewer_id: str,
        student_id: str,
        punctuality: int,
        contributions: int,
        commitment: int,
        attitude: int,
    ) -> Assessment:
        if not reviewer_id or not student_id:
            raise ValidationFailure("Reviewer and rated student are required")
        if reviewer_id == student_id:
            raise ValidationFailure("You cannot rate yourself")
        draft = AssessmentDraft(
            activity_id=activity_id,
            group_id=group_id,
            reviewer_id=reviewer_id,
            student_id=student_id,
            punctuality_score=validate_score("punctuality", punctuality),
            contributions_score=validate_score("contributions", contributions),
            commitment_score=validate_score("commitment", commitment),
            attitude_score=validate_score("attitude", attitude),
        )
        if await self.repository.exists_assessment(activity_id, reviewer_id, student_id):
            raise DuplicateAssessmentError(activity_id, reviewer_id, student_id)
        assessment = await self.repository.create_assessment(draft)
        LOGGER.info(
            "Assessment submitted",
            extra={"activity_id": activity_id, "reviewer_id": reviewer_id, "student_id": student_id},
        )
        return assessment


class ListPendingPeersUseCase:
    """Members of the reviewer's group still waiting for the reviewer's rating."""

    def __init__(
        self,
        assessment_repository: AssessmentRepository,
        membership_repository: MembershipRepository,
    ) -> None:
        self.assessments = assessment_repository
        self.memberships = membership_repository

    async def execute(self, activity_id: str, group_id: str, reviewer_id: str) -> List[str]:
        members = await self.memberships.get_memberships_by_group(group_id)
        member_ids = [membership.user_id for membership in members]
        return await self.assessments.list_pending_peer_ids(activity_id, reviewer_id, member_ids)


__all__ = [
    "ComputeActivitySummaryUseCase",
    "ComputeCourseSummaryUseCase",
    "ListPendingPeersUseCase",
    "LoadCoursePeerReviewUseCase",
    "SubmitAssessmentUseCase",
    "validate_score",
]
