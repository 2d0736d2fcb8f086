"""Core utilities (config, errors, events, refresh, stores) for the Courseven client."""

from .config import ClientConfig, RobleConfig, load_client_config
from .errors import (
    AuthenticationError,
    CoursevenError,
    DuplicateAssessmentError,
    RemoteError,
    UnsupportedOperationError,
    ValidationFailure,
)
from .events import (
    ActivityChangedEvent,
    AppEvent,
    AppEventBus,
    AssessmentSubmittedEvent,
    EnrollmentJoinedEvent,
    MembershipJoinedEvent,
)
from .refresh import RefreshManager
from .store import Controller, ControllerState, ObservableStore

__all__ = [
    "ActivityChangedEvent",
    "AppEvent",
    "AppEventBus",
    "AssessmentSubmittedEvent",
    "AuthenticationError",
    "ClientConfig",
    "Controller",
    "ControllerState",
    "CoursevenError",
    "DuplicateAssessmentError",
    "EnrollmentJoinedEvent",
    "MembershipJoinedEvent",
    "ObservableStore",
    "RefreshManager",
    "RemoteError",
    "RobleConfig",
    "UnsupportedOperationError",
    "ValidationFailure",
    "load_client_config",
]
