"""Observable per-feature controllers driven by use cases and the event bus."""

from .activity import ActivityController, ActivityState
from .base import CurrentUserProvider, SessionController
from .category import CategoryController, CategoryState
from .course import CourseController, CourseState
from .enrollment import EnrollmentController, EnrollmentState
from .group import GroupController, GroupState
from .home import HomeRevalidator
from .membership import MembershipController, MembershipState
from .peer_review import PeerReviewController, PeerReviewState

__all__ = [
    "ActivityController",
    "ActivityState",
    "CategoryController",
    "CategoryState",
    "CourseController",
    "CourseState",
    "CurrentUserProvider",
    "EnrollmentController",
    "EnrollmentState",
    "GroupController",
    "GroupState",
    "HomeRevalidator",
    "MembershipController",
    "MembershipState",
    "PeerReviewController",
    "PeerReviewState",
    "SessionController",
]
