"""Roble-backed repository implementations."""

from .activities import RobleActivityRepository
from .assessments import RobleAssessmentRepository
from .categories import RobleCategoryRepository
from .courses import RobleCourseRepository
from .enrollments import RobleEnrollmentRepository
from .groups import RobleGroupRepository
from .memberships import RobleMembershipRepository
from .users import RobleUserRepository

__all__ = [
    "RobleActivityRepository",
    "RobleAssessmentRepository",
    "RobleCategoryRepository",
    "RobleCourseRepository",
    "RobleEnrollmentRepository",
    "RobleGroupRepository",
    "RobleMembershipRepository",
    "RobleUserRepository",
]
