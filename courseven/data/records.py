"""Conversions between Roble table rows and domain entities.

Rows are loosely typed: booleans arrive as bools or ``"true"``/``"false"``
strings, numbers sometimes as strings, and timestamps may be missing entirely.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping

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

Row = Mapping[str, Any]


def to_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return fallback


def to_optional_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def to_optional_int(value: Any) -> int | None:
    number = to_optional_number(value)
    return int(number) if number is not None else None


def _text(row: Row, key: str, default: str = "") -> str:
    value = row.get(key)
    if isinstance(value, str):
        return value
    if value is None:
        return default
    return str(value)


def _optional_text(row: Row, key: str) -> str | None:
    value = row.get(key)
    if isinstance(value, str) and value.strip():
        return value
    return None


def _timestamp(row: Row, *keys: str) -> Dict[str, Any]:
    """Return ``{"<target>": value}`` for the first non-empty key, else nothing.

    An empty result lets the model fall back to "now".
    """
    target = keys[0]
    for key in keys:
        value = row.get(key)
        if isinstance(value, (str, datetime)) and value:
            return {target: value}
    return {}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _strip_blank_id(record: Dict[str, Any]) -> Dict[str, Any]:
    if not record.get("_id"):
        record.pop("_id", None)
    return record


# ---------------------------------------------------------------------------
# users


def user_from_record(row: Row) -> User:
    student_id = _optional_text(row, "student_id") or _optional_text(row, "user_id")
    return User(
        id=_text(row, "_id"),
        student_id=student_id,
        email=_text(row, "email"),
        first_name=_text(row, "first_name"),
        last_name=_text(row, "last_name"),
        username=_text(row, "username"),
        is_active=to_bool(row.get("is_active"), True),
        **_timestamp(row, "created_at", "createdAt"),
    )


# ---------------------------------------------------------------------------
# courses


def course_from_record(row: Row) -> Course:
    return Course(
        id=_text(row, "_id"),
        name=_text(row, "name"),
        description=_text(row, "description"),
        join_code=_text(row, "join_code"),
        teacher_id=_text(row, "teacher_id"),
        is_active=to_bool(row.get("is_active"), True),
        **_timestamp(row, "created_at", "createdAt"),
    )


def course_to_record(course: Course) -> Dict[str, Any]:
    return _strip_blank_id(
        {
            "_id": course.id,
            "name": course.name,
            "description": course.description,
            "join_code": course.join_code,
            "teacher_id": course.teacher_id,
            "created_at": _iso(course.created_at),
            "is_active": course.is_active,
        }
    )


# ---------------------------------------------------------------------------
# categories


def category_from_record(row: Row) -> Category:
    method = _text(row, "grouping_method", "manual") or "manual"
    return Category(
        id=_text(row, "_id"),
        name=_text(row, "name"),
        description=_text(row, "description"),
        course_id=_text(row, "course_id"),
        teacher_id=_text(row, "teacher_id"),
        grouping_method=method if method in ("manual", "random") else "manual",
        max_members_per_group=to_optional_int(row.get("max_members_per_group")),
        is_active=to_bool(row.get("is_active"), True),
        **_timestamp(row, "created_at", "createdAt"),
    )


def category_to_record(category: Category) -> Dict[str, Any]:
    return _strip_blank_id(
        {
            "_id": category.id,
            "name": category.name,
            "description": category.description,
            "course_id": category.course_id,
            "teacher_id": category.teacher_id,
            "grouping_method": category.grouping_method,
            "max_members_per_group": category.max_members_per_group,
            "created_at": _iso(category.created_at),
            "is_active": category.is_active,
        }
    )


# ---------------------------------------------------------------------------
# groups


def group_from_record(row: Row) -> Group:
    return Group(
        id=_text(row, "_id"),
        name=_text(row, "name"),
        category_id=_text(row, "category_id"),
        course_id=_text(row, "course_id"),
        teacher_id=_text(row, "teacher_id"),
        is_active=to_bool(row.get("is_active"), True),
        **_timestamp(row, "created_at", "createdAt"),
    )


def group_to_record(group: Group) -> Dict[str, Any]:
    return _strip_blank_id(
        {
            "_id": group.id,
            "name": group.name,
            "category_id": group.category_id,
            "course_id": group.course_id,
            "teacher_id": group.teacher_id,
            "created_at": _iso(group.created_at),
            "is_active": group.is_active,
        }
    )


# ---------------------------------------------------------------------------
# enrollments


def enrollment_from_record(row: Row) -> Enrollment:
    student_id = _optional_text(row, "user_id") or _optional_text(row, "student_id") or ""
    return Enrollment(
        id=_text(row, "_id"),
        student_id=student_id,
        course_id=_text(row, "course_id"),
        is_active=to_bool(row.get("is_active"), True),
        **_timestamp(row, "enrolled_at", "enrolledAt"),
    )


def enrollment_to_record(enrollment: Enrollment) -> Dict[str, Any]:
    return _strip_blank_id(
        {
            "_id": enrollment.id,
            "user_id": enrollment.student_id,
            "course_id": enrollment.course_id,
            "enrolled_at": _iso(enrollment.enrolled_at),
            "is_active": enrollment.is_active,
        }
    )


# ---------------------------------------------------------------------------
# memberships

# The backend column is spelled ``joinet_at``; older rows carry ``joined_at``.


def membership_from_record(row: Row) -> Membership:
    joined = _timestamp(row, "joinet_at", "joined_at", "joinedAt")
    return Membership(
        id=_text(row, "_id"),
        user_id=_text(row, "user_id"),
        group_id=_text(row, "group_id"),
        is_active=to_bool(row.get("is_active"), True),
        **({"joined_at": joined["joinet_at"]} if joined else {}),
    )


def membership_to_record(membership: Membership) -> Dict[str, Any]:
    return _strip_blank_id(
        {
            "_id": membership.id,
            "user_id": membership.user_id,
            "group_id": membership.group_id,
            "joinet_at": _iso(membership.joined_at),
            "is_active": membership.is_active,
        }
    )


# ---------------------------------------------------------------------------
# activities


def activity_from_record(row: Row) -> CourseActivity:
    return CourseActivity(
        id=_text(row, "_id"),
        title=_text(row, "title"),
        description=_optional_text(row, "description") or "",
        category_id=_text(row, "category_id"),
        course_id=_text(row, "course_id"),
        created_by=_text(row, "created_by"),
        due_date=_optional_text(row, "due_date"),
        is_active=to_bool(row.get("is_active"), True),
        reviewing=to_bool(row.get("reviewing"), False),
        private_review=to_bool(row.get("private_review"), False),
        **_timestamp(row, "created_at", "createdAt"),
    )


def activity_to_record(activity: CourseActivity) -> Dict[str, Any]:
    return _strip_blank_id(
        {
            "_id": activity.id,
            "title": activity.title,
            "description": activity.description,
            "category_id": activity.category_id,
            "course_id": activity.course_id,
            "created_by": activity.created_by,
            "due_date": _iso(activity.due_date),
            "created_at": _iso(activity.created_at),
            "is_active": activity.is_active,
            "reviewing": activity.reviewing,
            "private_review": activity.private_review,
        }
    )


# ---------------------------------------------------------------------------
# assessments

SCORE_COLUMNS = (
    "punctuality_score",
    "contributions_score",
    "commitment_score",
    "attitude_score",
)


def stored_overall(overall: float) -> int:
    """Persisted ``overall_score``: overall rounded to one decimal, times ten."""
    tenths = Decimal(overall).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return int(tenths * 10)


def assessment_from_record(row: Row) -> Assessment:
    scores = {column: to_optional_number(row.get(column)) or 0.0 for column in SCORE_COLUMNS}
    persisted = to_optional_number(row.get("overall_score"))
    overall = persisted / 10 if persisted is not None else sum(scores.values()) / 4.0
    return Assessment(
        id=_text(row, "_id") or _text(row, "id"),
        activity_id=_text(row, "activity_id"),
        group_id=_text(row, "group_id"),
        reviewer_id=_text(row, "reviewer"),
        student_id=_text(row, "reviewed"),
        overall_score_persisted=overall,
        updated_at=_optional_text(row, "updated_at"),
        **scores,
        **_timestamp(row, "created_at", "createdAt"),
    )


def assessment_to_record(draft: AssessmentDraft) -> Dict[str, Any]:
    return {
        "activity_id": draft.activity_id,
        "group_id": draft.group_id,
        "reviewer": draft.reviewer_id,
        "reviewed": draft.student_id,
        "punctuality_score": draft.punctuality_score,
        "contributions_score": draft.contributions_score,
        "commitment_score": draft.commitment_score,
        "attitude_score": draft.attitude_score,
        "overall_score": stored_overall(draft.overall),
    }


__all__ = [
    "SCORE_COLUMNS",
    "activity_from_record",
    "activity_to_record",
    "assessment_from_record",
    "assessment_to_record",
    "category_from_record",
    "category_to_record",
    "course_from_record",
    "course_to_record",
    "enrollment_from_record",
    "enrollment_to_record",
    "group_from_record",
    "group_to_record",
    "membership_from_record",
    "membership_to_record",
    "stored_overall",
    "to_bool",
    "to_optional_int",
    "to_optional_number",
    "user_from_record",
]
