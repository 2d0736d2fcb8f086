"""Wiring of services, repositories, use cases and controllers for one client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import httpx
from dotenv import load_dotenv

from courseven.auth import AuthRemoteDataSource, AuthRepository
from courseven.controllers import (
    ActivityController,
    CategoryController,
    CourseController,
    EnrollmentController,
    GroupController,
    HomeRevalidator,
    MembershipController,
    PeerReviewController,
)
from courseven.core.audit import AuditLogger
from courseven.core.config import ClientConfig, load_client_config
from courseven.core.events import AppEventBus
from courseven.core.refresh import RefreshManager
from courseven.data.repositories import (
    RobleActivityRepository,
    RobleAssessmentRepository,
    RobleCategoryRepository,
    RobleCourseRepository,
    RobleEnrollmentRepository,
    RobleGroupRepository,
    RobleMembershipRepository,
    RobleUserRepository,
)
from courseven.data.roble import RobleService
from courseven.data.session_store import JsonSessionStore
from courseven.domain.usecases import (
    ComputeActivitySummaryUseCase,
    ComputeCourseSummaryUseCase,
    CreateCategoryUseCase,
    CreateCourseUseCase,
    CreateGroupUseCase,
    EnrollToCourseUseCase,
    GetCourseActivitiesForStudentUseCase,
    GetMyEnrollmentsUseCase,
    JoinGroupUseCase,
    ListPendingPeersUseCase,
    LoadCoursePeerReviewUseCase,
    SubmitAssessmentUseCase,
)
from courseven.domain.usecases.auth import (
    GetCurrentSessionUseCase,
    LoginUseCase,
    LogoutUseCase,
    SignupUseCase,
    VerifyEmailUseCase,
)

CONFIG_ENV_VAR = "COURSEVEN_CONFIG"
LOGGER = logging.getLogger("courseven.container")


@dataclass
class Repositories:
    users: RobleUserRepository
    courses: RobleCourseRepository
    categories: RobleCategoryRepository
    groups: RobleGroupRepository
    enrollments: RobleEnrollmentRepository
    memberships: RobleMembershipRepository
    activities: RobleActivityRepository
    assessments: RobleAssessmentRepository


@dataclass
class AuthUseCases:
    login: LoginUseCase
    signup: SignupUseCase
    verify_email: VerifyEmailUseCase
    logout: LogoutUseCase
    get_current_session: GetCurrentSessionUseCase


@dataclass
class Controllers:
    courses: CourseController
    categories: CategoryController
    groups: GroupController
    enrollments: EnrollmentController
    memberships: MembershipController
    activities: ActivityController
    peer_review: PeerReviewController
    home: HomeRevalidator


class ClientContainer:
    """Everything one signed-in client needs, built from a :class:`ClientConfig`."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        session_store: JsonSessionStore | None = None,
    ) -> None:
        self.config = config
        self.service = RobleService(
            config.roble,
            client=http_client,
            temp_token_ttl=config.refresh.temp_token_ttl_ms / 1000,
        )
        self.session_store = session_store or JsonSessionStore(config.session.path)
        self.auth_remote = AuthRemoteDataSource(self.service)
        self.auth = AuthRepository(self.auth_remote, self.session_store)
        self.auth_use_cases = AuthUseCases(
            login=LoginUseCase(self.auth),
            signup=SignupUseCase(self.auth),
            verify_email=VerifyEmailUseCase(self.auth_remote, self.session_store),
            logout=LogoutUseCase(self.auth),
            get_current_session=GetCurrentSessionUseCase(self.auth),
        )
        self.event_bus = AppEventBus()
        self.refresh_manager = RefreshManager()
        self._current_user_id: str | None = None

        self.audit: AuditLogger | None = None
        self._detach_audit = None
        if config.audit_log is not None:
            self.audit = AuditLogger(config.audit_log, actor=lambda: self._current_user_id)
            self._detach_audit = self.audit.attach(self.event_bus)

        token = self.auth.access_token
        self.repositories = Repositories(
            users=RobleUserRepository(self.service, get_access_token=token),
            courses=RobleCourseRepository(self.service, get_access_token=token),
            categories=RobleCategoryRepository(self.service, get_access_token=token),
            groups=RobleGroupRepository(self.service, get_access_token=token),
            enrollments=RobleEnrollmentRepository(self.service, get_access_token=token),
            memberships=RobleMembershipRepository(self.service, get_access_token=token),
            activities=RobleActivityRepository(self.service, get_access_token=token),
            assessments=RobleAssessmentRepository(self.service, get_access_token=token),
        )
        self.controllers = self._build_controllers()

    def _build_controllers(self) -> Controllers:
        repos = self.repositories
        user_id = self.get_current_user_id
        enrollments = EnrollmentController(
            enroll_to_course_use_case=EnrollToCourseUseCase(repos.enrollments, repos.courses),
            get_my_enrollments_use_case=GetMyEnrollmentsUseCase(repos.enrollments),
            enrollment_repository=repos.enrollments,
            course_repository=repos.courses,
            user_repository=repos.users,
            event_bus=self.event_bus,
            get_current_user_id=user_id,
        )
        courses = CourseController(
            create_course_use_case=CreateCourseUseCase(
                repos.courses, max_courses_per_teacher=self.config.max_courses_per_teacher
            ),
            course_repository=repos.courses,
            get_current_user_id=user_id,
            enrollment_controller=enrollments,
        )
        return Controllers(
            courses=courses,
            categories=CategoryController(
                category_repository=repos.categories,
                create_category_use_case=CreateCategoryUseCase(repos.categories),
                get_current_user_id=user_id,
            ),
            groups=GroupController(
                group_repository=repos.groups,
                create_group_use_case=CreateGroupUseCase(repos.groups),
                get_current_user_id=user_id,
            ),
            enrollments=enrollments,
            memberships=MembershipController(
                join_group_use_case=JoinGroupUseCase(
                    repos.memberships, repos.groups, repos.categories
                ),
                membership_repository=repos.memberships,
                group_repository=repos.groups,
                event_bus=self.event_bus,
                get_current_user_id=user_id,
            ),
            activities=ActivityController(
                activity_repository=repos.activities,
                get_course_activities_for_student_use_case=GetCourseActivitiesForStudentUseCase(
                    repos.activities, repos.memberships, repos.groups
                ),
                event_bus=self.event_bus,
                refresh_manager=self.refresh_manager,
                get_current_user_id=user_id,
                refresh_config=self.config.refresh,
            ),
            peer_review=PeerReviewController(
                load_course_peer_review_use_case=LoadCoursePeerReviewUseCase(
                    repos.activities, repos.groups, repos.assessments
                ),
                compute_course_summary_use_case=ComputeCourseSummaryUseCase(repos.assessments),
                compute_activity_summary_use_case=ComputeActivitySummaryUseCase(repos.assessments),
                submit_assessment_use_case=SubmitAssessmentUseCase(repos.assessments),
                list_pending_peers_use_case=ListPendingPeersUseCase(
                    repos.assessments, repos.memberships
                ),
                event_bus=self.event_bus,
                get_current_user_id=user_id,
            ),
            home=HomeRevalidator(
                course_controller=courses,
                enrollment_controller=enrollments,
                refresh_manager=self.refresh_manager,
                event_bus=self.event_bus,
                refresh_config=self.config.refresh,
            ),
        )

    async def get_current_user_id(self) -> str | None:
        user = await self.auth.current_user()
        self._current_user_id = user.id if user is not None else None
        return self._current_user_id

    async def aclose(self) -> None:
        self.controllers.home.close()
        self.controllers.activities.close()
        self.controllers.peer_review.close()
        self.refresh_manager.clear()
        if self._detach_audit is not None:
            self._detach_audit()
        self.event_bus.dispose()
        await self.service.aclose()

    async def __aenter__(self) -> "ClientContainer":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def bootstrap_client(
    config_path: Path | None = None,
    *,
    repo_root: Path | None = None,
    environ: Mapping[str, str] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ClientContainer:
    """Load ``.env`` and configuration, then build a :class:`ClientContainer`.

    ``config_path`` falls back to ``$COURSEVEN_CONFIG``; without either the
    configuration comes from defaults plus environment overrides.
    """
    repo_root = (repo_root or Path.cwd()).resolve()
    load_dotenv(repo_root / ".env")
    env = os.environ if environ is None else environ
    if config_path is None and env.get(CONFIG_ENV_VAR):
        config_path = Path(env[CONFIG_ENV_VAR])
    config = load_client_config(config_path, environ=env)
    LOGGER.info(
        "Client configured for database %s",
        config.roble.database_name,
        extra={"config_path": str(config_path) if config_path else None},
    )
    return ClientContainer(config, http_client=http_client)


__all__ = [
    "AuthUseCases",
    "ClientContainer",
    "Controllers",
    "Repositories",
    "bootstrap_client",
]
