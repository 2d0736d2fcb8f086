from datetime import datetime, timezone

from courseven.data.records import (
    activity_from_record,
    activity_to_record,
    assessment_from_record,
    assessment_to_record,
    category_from_record,
    enrollment_from_record,
    enrollment_to_record,
    membership_from_record,
    membership_to_record,
    stored_overall,
    to_bool,
    to_optional_number,
    user_from_record,
)
from courseven.domain.models import AssessmentDraft, Enrollment, Membership


def test_loose_booleans_and_numbers() -> None:
    assert to_bool("TRUE", False) is True
    assert to_bool("false", True) is False
    assert to_bool("maybe", True) is True
    assert to_bool(None, False) is False
    assert to_optional_number("4.5") == 4.5
    assert to_optional_number("nan") is None
    assert to_optional_number(True) is None
    assert to_optional_number("") is None


def test_user_falls_back_to_auth_user_id() -> None:
    user = user_from_record({"_id": "u1", "user_id": "auth-9", "first_name": "Ana", "last_name": "Ruiz"})

    assert user.student_id == "auth-9"
    assert user.identity_ids == ["u1", "auth-9"]
    assert user.display_name == "Ana Ruiz"


def test_category_unknown_grouping_method_becomes_manual() -> None:
    category = category_from_record(
        {"_id": "cat1", "name": "Teams", "course_id": "c1", "grouping_method": "alphabetical", "max_members_per_group": "4"}
    )

    assert category.grouping_method == "manual"
    assert category.max_members_per_group == 4


def test_enrollment_uses_user_id_column() -> None:
    enrollment = enrollment_from_record({"_id": "e1", "user_id": "u1", "course_id": "c1", "is_active": "false"})
    assert enrollment.student_id == "u1"
    assert enrollment.is_active is False

    record = enrollment_to_record(Enrollment(id="", student_id="u1", course_id="c1"))
    assert "_id" not in record
    assert record["user_id"] == "u1"


def test_membership_joined_column_spelling() -> None:
    legacy = membership_from_record({"_id": "m1", "user_id": "u1", "group_id": "g1", "joined_at": "2024-03-01T10:00:00+00:00"})
    assert legacy.joined_at == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    record = membership_to_record(Membership(id="m2", user_id="u1", group_id="g1"))
    assert "joinet_at" in record
    assert "joined_at" not in record


def test_activity_round_trip_fields() -> None:
    activity = activity_from_record(
        {
            "_id": "a1",
            "title": "Sprint review",
            "category_id": "cat1",
            "course_id": "c1",
            "due_date": "2024-05-01T12:00:00Z",
            "reviewing": "true",
            "private_review": False,
        }
    )

    assert activity.is_public_review
    assert activity.due_date.year == 2024
    record = activity_to_record(activity)
    assert record["reviewing"] is True
    assert record["due_date"].startswith("2024-05-01T12:00:00")


def test_assessment_columns() -> None:
    draft = AssessmentDraft(
        activity_id="a1",
        group_id="g1",
        reviewer_id="r1",
        student_id="s1",
        punctuality_score=5,
        contributions_score=3,
        commitment_score=4,
        attitude_score=3,
    )

    record = assessment_to_record(draft)

    assert record["reviewer"] == "r1"
    assert record["reviewed"] == "s1"
    # overall 3.75 rounds to 3.8, stored as tenths
    assert record["overall_score"] == 38


def test_assessment_from_record_prefers_persisted_overall() -> None:
    row = {
        "_id": "as1",
        "activity_id": "a1",
        "reviewer": "r1",
        "reviewed": "s1",
        "punctuality_score": "4",
        "contributions_score": 4,
        "commitment_score": 4,
        "attitude_score": 5,
        "overall_score": 43,
    }

    assessment = assessment_from_record(row)

    assert assessment.reviewer_id == "r1"
    assert assessment.student_id == "s1"
    assert assessment.punctuality_score == 4.0
    assert assessment.overall_score_persisted == 4.3
    assert assessment.overall == 4.25

    without = assessment_from_record({**row, "overall_score": None})
    assert without.overall_score_persisted == 4.25


def test_stored_overall_rounding() -> None:
    assert stored_overall(5.0) == 50
    assert stored_overall(4.25) == 43
    assert stored_overall(1.0) == 10
