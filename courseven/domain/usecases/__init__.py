"""Application use cases, one class per user-facing operation."""

from .activity import GetCourseActivitiesForStudentUseCase
from .category import CreateCategoryUseCase
from .course import CreateCourseUseCase
from .enrollment import EnrollToCourseUseCase, GetMyEnrollmentsUseCase
from .group import CreateGroupUseCase
from .membership import JoinGroupUseCase
from .peer_review import (
    ComputeActivitySummaryUseCase,
    ComputeCourseSummaryUseCase,
    ListPendingPeersUseCase,
    LoadCoursePeerReviewUseCase,
    SubmitAssessmentUseCase,
)

__all__ = [
    "ComputeActivitySummaryUseCase",
    "ComputeCourseSummaryUseCase",
    "CreateCategoryUseCase",
    "CreateCourseUseCase",
    "CreateGroupUseCase",
    "EnrollToCourseUseCase",
    "GetCourseActivitiesForStudentUseCase",
    "GetMyEnrollmentsUseCase",
    "JoinGroupUseCase",
    "ListPendingPeersUseCase",
    "LoadCoursePeerReviewUseCase",
    "SubmitAssessmentUseCase",
]
