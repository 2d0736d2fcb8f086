from __future__ import annotations

import asyncio
from pathlib import Path

import anyio
import pytest

from courseven.controllers.activity import student_refresh_key
from courseven.controllers.home import LEARNING_KEY, TEACHING_KEY
from courseven.core.config import RefreshConfig
from courseven.core.events import ActivityChangedEvent, EnrollmentJoinedEvent, MembershipJoinedEvent
from tests.mocks.clients import build_client, register_user, sign_in
from tests.mocks.roble_api import RobleAPIMock


@pytest.fixture()
def mock() -> RobleAPIMock:
    return RobleAPIMock()


def _reads(mock: RobleAPIMock, table: str) -> int:
    return sum(1 for request in mock.requests if request["op"] == "read" and request["table"] == table)


def test_teacher_course_lifecycle(mock: RobleAPIMock, tmp_path: Path) -> None:
    teacher_id = register_user(mock, "teacher@example.com", first_name="Tess")
    client = build_client(mock, tmp_path, "teacher", max_courses_per_teacher=2)
    courses = client.controllers.courses
    snapshots = []
    courses.subscribe(snapshots.append)

    async def scenario() -> None:
        await sign_in(client, "teacher@example.com")
        first = await courses.create_course("Algebra", "Linear algebra")
        assert first is not None and first.teacher_id == teacher_id
        assert courses.get_snapshot().created_course == first
        assert [course.name for course in courses.teacher_courses] == ["Algebra"]

        await courses.create_course("Geometry")
        assert await courses.can_create_more_courses() is False
        assert await courses.create_course("Third") is None
        assert "limit of 2 courses" in courses.error

        courses.clear_error()
        renamed = await courses.update_course(first.model_copy(update={"name": "Algebra I"}))
        assert renamed is not None
        assert courses.teacher_courses[0].name == "Algebra I"

        assert await courses.set_course_active(first.id, True) is None
        assert "active courses" in courses.error
        disabled = await courses.set_course_active(first.id, False)
        assert disabled is not None and disabled.is_active is False
        assert await courses.ensure_course_active(first.id, "categories") is False
        assert courses.error == "Enable the course before creating categories"

        assert await courses.delete_course(first.id) is True
        assert [course.name for course in courses.teacher_courses] == ["Geometry"]
        courses.clear_created_course()
        assert courses.get_snapshot().created_course is None
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)
    assert snapshots[-1].is_loading is False
    assert any(state.is_loading for state in snapshots)


def test_other_teachers_cannot_modify_a_course(mock: RobleAPIMock, tmp_path: Path) -> None:
    register_user(mock, "owner@example.com")
    register_user(mock, "intruder@example.com")
    (course_row,) = mock.seed(
        "courses", {"name": "Owned", "join_code": "OWN001", "teacher_id": "someone-else", "is_active": True}
    )
    client = build_client(mock, tmp_path, "intruder")
    courses = client.controllers.courses

    async def scenario() -> None:
        await sign_in(client, "intruder@example.com")
        course = await courses.get_course_by_id(course_row["_id"])
        assert course is not None
        assert await courses.update_course(course.model_copy(update={"name": "Mine"})) is None
        assert courses.error == "You do not have permission to edit this course"
        assert await courses.delete_course(course.id) is False
        assert await courses.set_course_active(course.id, False) is None
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)
    assert mock.rows("courses")[0]["name"] == "Owned"


def test_signed_out_mutations_surface_errors(mock: RobleAPIMock, tmp_path: Path) -> None:
    client = build_client(mock, tmp_path, "anonymous")
    courses = client.controllers.courses

    async def scenario() -> None:
        assert await courses.create_course("Algebra") is None
        assert courses.error == "User is not signed in"
        assert courses.is_loading is False
        await courses.load_my_teaching_courses()
        assert courses.teacher_courses == ()
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def test_remote_failures_become_state_errors(mock: RobleAPIMock, tmp_path: Path) -> None:
    register_user(mock, "teacher@example.com")
    mock.fail_reads["courses"] = 500
    client = build_client(mock, tmp_path, "teacher")
    courses = client.controllers.courses

    async def scenario() -> None:
        await sign_in(client, "teacher@example.com")
        await courses.load_my_teaching_courses()
        assert "status 500" in courses.error
        assert courses.is_loading is False
        assert await courses.can_create_more_courses() is False
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def test_categories_and_groups(mock: RobleAPIMock, tmp_path: Path) -> None:
    register_user(mock, "teacher@example.com")
    client = build_client(mock, tmp_path, "teacher")
    categories = client.controllers.categories
    groups = client.controllers.groups

    async def scenario() -> None:
        await sign_in(client, "teacher@example.com")
        category = await categories.create_category(
            name="Teams", course_id="c1", max_members_per_group=3, description=" Project teams "
        )
        assert category is not None and category.description == "Project teams"
        assert [item.name for item in categories.categories_for("c1")] == ["Teams"]

        renamed = await categories.update_category(category.model_copy(update={"name": "Squads"}))
        assert renamed.name == "Squads"
        assert categories.categories_for("c1")[0].name == "Squads"

        group = await groups.create_group(name="Team A", course_id="c1", category_id=category.id)
        assert group is not None
        assert [item.id for item in groups.groups_for_course("c1")] == [group.id]
        assert [item.id for item in groups.groups_for_category(category.id)] == [group.id]

        assert await groups.delete_group(group.id, "c1", category.id) is True
        assert groups.groups_for_category(category.id) == ()
        await groups.load_by_course("c1", force=True)
        assert groups.groups_for_course("c1") == ()

        assert await categories.delete_category(category.id, "c1") is True
        assert categories.categories_for("c1") == ()
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def _seed_course(mock: RobleAPIMock, teacher_id: str, *, grouping_method: str = "manual") -> dict:
    (course,) = mock.seed(
        "courses",
        {"name": "Software Project", "join_code": "JOIN42", "teacher_id": teacher_id, "is_active": True},
    )
    (category,) = mock.seed(
        "categories",
        {"name": "Teams", "course_id": course["_id"], "grouping_method": grouping_method, "is_active": True},
    )
    (group,) = mock.seed(
        "groups",
        {"name": "Team A", "course_id": course["_id"], "category_id": category["_id"], "is_active": True},
    )
    (activity,) = mock.seed(
        "activities",
        {
            "title": "Sprint 1",
            "course_id": course["_id"],
            "category_id": category["_id"],
            "due_date": "2024-05-01T12:00:00Z",
            "is_active": True,
            "reviewing": True,
        },
    )
    return {"course": course, "category": category, "group": group, "activity": activity}


def test_student_joins_course_and_home_revalidates(mock: RobleAPIMock, tmp_path: Path) -> None:
    teacher_id = register_user(mock, "teacher@example.com", first_name="Tess", last_name="Lee")
    register_user(mock, "student@example.com")
    seeded = _seed_course(mock, teacher_id)
    course_id = seeded["course"]["_id"]
    client = build_client(mock, tmp_path, "student")
    enrollments = client.controllers.enrollments
    home = client.controllers.home
    published = []
    client.event_bus.subscribe(published.append, EnrollmentJoinedEvent)

    async def scenario() -> None:
        await sign_in(client, "student@example.com")
        await home.revalidate()
        assert client.refresh_manager.last_run(TEACHING_KEY) is not None
        learning_run = client.refresh_manager.last_run(LEARNING_KEY)
        assert enrollments.my_enrollments == ()

        enrollment = await enrollments.join_by_code(" JOIN42 ")
        assert enrollment is not None and enrollment.course_id == course_id
        assert published == [EnrollmentJoinedEvent(course_id=course_id)]
        assert home.pending
        await asyncio.gather(*home.pending)
        assert client.refresh_manager.last_run(LEARNING_KEY) >= learning_run

        assert [item.course_id for item in enrollments.my_enrollments] == [course_id]
        assert enrollments.course_title(course_id) == "Software Project"
        assert enrollments.course_teacher_name(course_id) == "Tess Lee"
        assert enrollments.is_course_active(course_id) is True
        assert enrollments.course_title("unknown") == "Course"

        assert await enrollments.join_by_code("JOIN42") is None
        assert enrollments.error == "You are already enrolled in this course"
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def test_teacher_sees_roster_and_counts(mock: RobleAPIMock, tmp_path: Path) -> None:
    teacher_id = register_user(mock, "teacher@example.com")
    student_id = register_user(mock, "student@example.com", first_name="Sam")
    seeded = _seed_course(mock, teacher_id)
    course_id = seeded["course"]["_id"]
    mock.seed("enrollments", {"user_id": student_id, "course_id": course_id, "is_active": True})
    client = build_client(mock, tmp_path, "teacher")
    enrollments = client.controllers.enrollments

    async def scenario() -> None:
        await sign_in(client, "teacher@example.com")
        await enrollments.load_enrollment_count_for_course(course_id)
        assert enrollments.enrollment_count_for(course_id) == 1
        await enrollments.load_enrollments_for_course(course_id)
        assert [item.student_id for item in enrollments.enrollments_for(course_id)] == [student_id]
        assert enrollments.user_name(student_id) == "Sam"
        assert enrollments.user_email(student_id) == "student@example.com"
        assert enrollments.user_name("ghost") == "ghost"
        assert not enrollments.is_loading_course(course_id)

        reads = _reads(mock, "enrollments")
        await enrollments.load_enrollments_for_course(course_id)
        assert _reads(mock, "enrollments") == reads
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def test_course_rename_updates_enrollment_titles(mock: RobleAPIMock, tmp_path: Path) -> None:
    teacher_id = register_user(mock, "teacher@example.com")
    seeded = _seed_course(mock, teacher_id)
    course_id = seeded["course"]["_id"]
    mock.seed("enrollments", {"user_id": teacher_id, "course_id": course_id, "is_active": True})
    client = build_client(mock, tmp_path, "teacher")

    async def scenario() -> None:
        await sign_in(client, "teacher@example.com")
        await client.controllers.enrollments.load_my_enrollments()
        await client.controllers.courses.load_my_teaching_courses()
        version = client.controllers.enrollments.get_snapshot().titles_version
        course = client.controllers.courses.teacher_courses[0]
        await client.controllers.courses.update_course(course.model_copy(update={"name": "Capstone"}))
        assert client.controllers.enrollments.course_title(course_id) == "Capstone"
        assert client.controllers.enrollments.get_snapshot().titles_version == version + 1
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def test_membership_join_invalidates_student_activities(mock: RobleAPIMock, tmp_path: Path) -> None:
    teacher_id = register_user(mock, "teacher@example.com")
    register_user(mock, "student@example.com")
    seeded = _seed_course(mock, teacher_id)
    course_id = seeded["course"]["_id"]
    group_id = seeded["group"]["_id"]
    client = build_client(mock, tmp_path, "student")
    memberships = client.controllers.memberships
    activities = client.controllers.activities
    events = []
    client.event_bus.subscribe(events.append, MembershipJoinedEvent)

    async def scenario() -> None:
        await sign_in(client, "student@example.com")
        await activities.load_for_student(course_id)
        assert activities.student_activities_for_course(course_id) == ()
        assert client.refresh_manager.is_fresh(student_refresh_key(course_id), 60_000)

        membership = await memberships.join_group(group_id)
        assert membership is not None
        assert memberships.has_joined(group_id)
        assert await memberships.get_member_count(group_id) == 1
        assert events == [MembershipJoinedEvent(group_id=group_id, course_id=course_id)]
        assert not client.refresh_manager.is_fresh(student_refresh_key(course_id), 60_000)

        await activities.load_for_student(course_id)
        assert [item.title for item in activities.student_activities_for_course(course_id)] == ["Sprint 1"]

        assert await memberships.join_group(group_id) is None
        assert memberships.error == "You are already a member of this group"
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def test_preload_memberships_and_counts(mock: RobleAPIMock, tmp_path: Path) -> None:
    student_id = register_user(mock, "student@example.com")
    mock.seed(
        "memberships",
        {"user_id": student_id, "group_id": "g1", "is_active": True},
        {"user_id": "other", "group_id": "g1", "is_active": True},
        {"user_id": "other", "group_id": "g2", "is_active": True},
    )
    client = build_client(mock, tmp_path, "student")
    memberships = client.controllers.memberships

    async def scenario() -> None:
        await sign_in(client, "student@example.com")
        await memberships.preload_memberships_for_groups(["g1", "g2", "g3"])
        assert memberships.get_snapshot().my_group_ids == ("g1",)
        await memberships.preload_member_counts_for_groups(["g1", "g2", "g1"])
        assert dict(memberships.get_snapshot().group_member_counts) == {"g1": 2, "g2": 1}
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def test_student_activities_are_cached_within_ttl(mock: RobleAPIMock, tmp_path: Path) -> None:
    teacher_id = register_user(mock, "teacher@example.com")
    student_id = register_user(mock, "student@example.com")
    seeded = _seed_course(mock, teacher_id)
    course_id = seeded["course"]["_id"]
    mock.seed("memberships", {"user_id": student_id, "group_id": seeded["group"]["_id"], "is_active": True})
    client = build_client(mock, tmp_path, "student", refresh=RefreshConfig(student_activities_ttl_ms=60_000))
    activities = client.controllers.activities

    async def scenario() -> None:
        await sign_in(client, "student@example.com")
        await asyncio.gather(activities.load_for_student(course_id), activities.load_for_student(course_id))
        reads = _reads(mock, "activities")
        assert reads == 1
        await activities.load_for_student(course_id)
        assert _reads(mock, "activities") == reads
        await activities.load_for_student(course_id, force=True)
        assert _reads(mock, "activities") == reads + 1
        assert len(activities.student_activities_for_course(course_id)) == 1
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def test_teacher_activity_mutations_publish_changes(mock: RobleAPIMock, tmp_path: Path) -> None:
    teacher_id = register_user(mock, "teacher@example.com")
    seeded = _seed_course(mock, teacher_id)
    course_id = seeded["course"]["_id"]
    category_id = seeded["category"]["_id"]
    client = build_client(mock, tmp_path, "teacher")
    activities = client.controllers.activities
    changes = []
    client.event_bus.subscribe(changes.append, ActivityChangedEvent)

    async def scenario() -> None:
        await sign_in(client, "teacher@example.com")
        await activities.load_by_course(course_id)
        await activities.load_by_category(category_id)
        assert [item.title for item in activities.activities_for_course(course_id)] == ["Sprint 1"]

        created = await activities.create_activity(
            title=" Retrospective ", course_id=course_id, category_id=category_id, reviewing=True
        )
        assert created is not None and created.title == "Retrospective"
        assert created.created_by == teacher_id
        assert activities.created_activity == created
        assert {item.id for item in activities.activities_for_category(category_id)} == {
            seeded["activity"]["_id"],
            created.id,
        }

        updated = await activities.update_activity(created.model_copy(update={"private_review": True}))
        assert updated.private_review is True
        assert await activities.get_activity_by_id(created.id) == updated

        assert await activities.delete_activity(
            activity_id=created.id, course_id=course_id, category_id=category_id
        )
        assert [item.title for item in activities.activities_for_course(course_id)] == ["Sprint 1"]
        assert changes == [ActivityChangedEvent(course_id=course_id, activity_id=created.id)] * 3
        activities.clear_created_activity()
        assert activities.created_activity is None
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)


def test_close_detaches_controllers_from_the_bus(mock: RobleAPIMock, tmp_path: Path) -> None:
    client = build_client(mock, tmp_path, "anyone")
    bus = client.event_bus
    assert bus.subscriber_count == 3

    async def scenario() -> None:
        await client.aclose()
        await mock.aclose()

    anyio.run(scenario)
    assert bus.subscriber_count == 0
