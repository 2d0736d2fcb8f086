"""Pure peer-review aggregation.

Everything here is recomputed from the source assessments on every call. Each
reported number is rounded to two decimals, half away from zero, on the exact
decimal expansion of the binary float (the same digits ``toFixed(2)`` prints).
"""

from __future__ import annotations

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Sequence

from courseven.domain.models import (
    ActivityPeerReviewSummary,
    Assessment,
    CourseActivity,
    CoursePeerReviewSummary,
    GroupActivityReviewStats,
    GroupCrossActivityStats,
    ScoreAverages,
    StudentActivityReviewStats,
    StudentCrossActivityStats,
)

DIMENSIONS = ("punctuality", "contributions", "commitment", "attitude")
_CENTS = Decimal("0.01")


def round2(value: float) -> float:
    return float(Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


def _group_by(assessments: Iterable[Assessment], attribute: str) -> Dict[str, List[Assessment]]:
    buckets: Dict[str, List[Assessment]] = defaultdict(list)
    for assessment in assessments:
        buckets[getattr(assessment, attribute) or ""].append(assessment)
    return buckets


def compute_averages(assessments: Sequence[Assessment]) -> ScoreAverages | None:
    """Mean of each dimension plus ``overall`` (mean of per-assessment overalls).

    Returns ``None`` for an empty input.
    """
    if not assessments:
        return None
    return _mean_scores(assessments)


def _mean_scores(assessments: Sequence[Assessment]) -> ScoreAverages:
    count = len(assessments)
    sums = {name: 0.0 for name in DIMENSIONS}
    overall = 0.0
    for assessment in assessments:
        sums["punctuality"] += assessment.punctuality_score
        sums["contributions"] += assessment.contributions_score
        sums["commitment"] += assessment.commitment_score
        sums["attitude"] += assessment.attitude_score
        overall += assessment.overall
    return ScoreAverages(
        **{name: round2(total / count) for name, total in sums.items()},
        overall=round2(overall / count),
    )


def compute_student_stats(assessments: Sequence[Assessment]) -> List[StudentCrossActivityStats]:
    stats: List[StudentCrossActivityStats] = []
    for student_id, received in _group_by(assessments, "student_id").items():
        stats.append(
            StudentCrossActivityStats(
                student_id=student_id,
                assessments_received=len(received),
                averages=_mean_scores(received),
            )
        )
    return stats


def compute_group_stats(
    assessments: Sequence[Assessment],
    group_ids: Sequence[str] | None = None,
) -> List[GroupCrossActivityStats]:
    """Per-group rollups in ``group_ids`` order, followed by any other group seen.

    Groups named in ``group_ids`` without assessments are reported with
    ``assessments_count == 0`` and no averages.
    """
    buckets = _group_by(assessments, "group_id")
    ordered: List[str] = list(dict.fromkeys(group_ids or []))
    ordered.extend(group_id for group_id in buckets if group_id not in ordered)
    stats: List[GroupCrossActivityStats] = []
    for group_id in ordered:
        received = buckets.get(group_id, [])
        stats.append(
            GroupCrossActivityStats(
                group_id=group_id,
                assessments_count=len(received),
                averages=compute_averages(received),
            )
        )
    return stats


def weighted_course_averages(groups: Iterable[GroupCrossActivityStats]) -> ScoreAverages | None:
    """Course-level averages weighted by each group's ``assessments_count``.

    Groups with no weight are left out. When nothing carries weight the result is
    ``None``: there is not enough data, which is different from a score of zero.
    """
    weight_sum = 0
    totals = {name: 0.0 for name in (*DIMENSIONS, "overall")}
    for group in groups:
        weight = group.assessments_count
        if weight <= 0 or group.averages is None:
            continue
        weight_sum += weight
        for name in totals:
            totals[name] += getattr(group.averages, name) * weight
    if weight_sum == 0:
        return None
    return ScoreAverages(**{name: round2(total / weight_sum) for name, total in totals.items()})


def build_course_summary(
    activity_ids: Sequence[str],
    assessments: Sequence[Assessment],
    group_ids: Sequence[str] | None = None,
) -> CoursePeerReviewSummary:
    wanted = set(activity_ids)
    relevant = [assessment for assessment in assessments if assessment.activity_id in wanted]
    groups = compute_group_stats(relevant, group_ids)
    return CoursePeerReviewSummary(
        activity_ids=list(activity_ids),
        groups=groups,
        students=compute_student_stats(relevant),
        course_averages=weighted_course_averages(groups),
    )


def build_activity_summary(
    activity_id: str,
    assessments: Sequence[Assessment],
) -> ActivityPeerReviewSummary:
    relevant = [assessment for assessment in assessments if assessment.activity_id == activity_id]
    groups: List[GroupActivityReviewStats] = []
    for group_id, received in _group_by(relevant, "group_id").items():
        students = [
            StudentActivityReviewStats(
                student_id=student_id,
                received_count=len(items),
                averages=_mean_scores(items),
            )
            for student_id, items in _group_by(received, "student_id").items()
        ]
        groups.append(
            GroupActivityReviewStats(
                group_id=group_id,
                averages=_mean_scores(received),
                students=students,
            )
        )
    return ActivityPeerReviewSummary(
        activity_id=activity_id,
        activity_averages=compute_averages(relevant),
        groups=groups,
    )


def select_review_activity_ids(activities: Iterable[CourseActivity]) -> List[str]:
    """Ids of activities whose peer reviews are open to the course summary."""
    return [activity.id for activity in activities if activity.is_public_review]


__all__ = [
    "DIMENSIONS",
    "build_activity_summary",
    "build_course_summary",
    "compute_averages",
    "compute_group_stats",
    "compute_student_stats",
    "round2",
    "select_review_activity_ids",
    "weighted_course_averages",
]
