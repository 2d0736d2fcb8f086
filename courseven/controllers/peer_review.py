"""Peer-review summaries plus the reviewer's own submissions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Mapping, Sequence, Tuple, assert_never

from courseven.controllers.base import (
    CurrentUserProvider,
    SessionController,
    with_entry,
    without_entry,
)
from courseven.core.events import (
    ActivityChangedEvent,
    AppEvent,
    AppEventBus,
    AssessmentSubmittedEvent,
    EnrollmentJoinedEvent,
    MembershipJoinedEvent,
)
from courseven.core.store import Action, ControllerState
from courseven.domain.models import (
    ActivityPeerReviewSummary,
    Assessment,
    CoursePeerReviewSummary,
)
from courseven.domain.usecases.peer_review import (
    ComputeActivitySummaryUseCase,
    ComputeCourseSummaryUseCase,
    ListPendingPeersUseCase,
    LoadCoursePeerReviewUseCase,
    SubmitAssessmentUseCase,
)

LOGGER = logging.getLogger("courseven.controllers.peer_review")


def _course_key(course_id: str) -> str:
    return f"course:{course_id}"


def _activity_key(activity_id: str) -> str:
    return f"activity:{activity_id}"


def _pending_key(activity_id: str) -> str:
    return f"pending:{activity_id}"


@dataclass(frozen=True)
class PeerReviewState(ControllerState):
    course_summaries: Mapping[str, CoursePeerReviewSummary] = field(default_factory=dict)
    activity_summaries: Mapping[str, ActivityPeerReviewSummary] = field(default_factory=dict)
    # Peers the signed-in reviewer still has to rate, keyed by activity id.
    pending_peers: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class CourseSummaryLoaded(Action):
    course_id: str
    summary: CoursePeerReviewSummary


@dataclass(frozen=True)
class ActivitySummaryLoaded(Action):
    activity_id: str
    summary: ActivityPeerReviewSummary


@dataclass(frozen=True)
class PendingPeersLoaded(Action):
    activity_id: str
    peer_ids: Tuple[str, ...]


@dataclass(frozen=True)
class PeerRated(Action):
    activity_id: str
    student_id: str


@dataclass(frozen=True)
class SummariesDropped(Action):
    course_ids: Tuple[str, ...] = ()
    activity_ids: Tuple[str, ...] = ()


class PeerReviewController(SessionController[PeerReviewState]):
    """Caches course and activity summaries until an event makes them stale.

    A course summary stays cached until ``force`` is passed or an
    :class:`ActivityChangedEvent` / :class:`AssessmentSubmittedEvent` drops it.
    An activity summary goes with any event naming its activity.
    Dropping a summary also retires any load still in flight for it.
    """

    def __init__(
        self,
        *,
        load_course_peer_review_use_case: LoadCoursePeerReviewUseCase,
        compute_course_summary_use_case: ComputeCourseSummaryUseCase,
        compute_activity_summary_use_case: ComputeActivitySummaryUseCase,
        submit_assessment_use_case: SubmitAssessmentUseCase,
        list_pending_peers_use_case: ListPendingPeersUseCase,
        event_bus: AppEventBus,
        get_current_user_id: CurrentUserProvider,
    ) -> None:
        super().__init__(PeerReviewState(), get_current_user_id)
        self.load_course_peer_review = load_course_peer_review_use_case
        self.compute_course_summary = compute_course_summary_use_case
        self.compute_activity_summary = compute_activity_summary_use_case
        self.submit_assessment_use_case = submit_assessment_use_case
        self.list_pending_peers = list_pending_peers_use_case
        self.event_bus = event_bus
        self._unsubscribe = event_bus.subscribe(self._on_event)

    def reduce(self, state: PeerReviewState, action: Action) -> PeerReviewState:
        match action:
            case CourseSummaryLoaded(course_id=course_id, summary=summary):
                return replace(
                    state,
                    course_summaries=with_entry(state.course_summaries, course_id, summary),
                )
            case ActivitySummaryLoaded(activity_id=activity_id, summary=summary):
                return replace(
                    state,
                    activity_summaries=with_entry(state.activity_summaries, activity_id, summary),
                )
            case PendingPeersLoaded(activity_id=activity_id, peer_ids=peer_ids):
                return replace(
                    state, pending_peers=with_entry(state.pending_peers, activity_id, peer_ids)
                )
            case PeerRated(activity_id=activity_id, student_id=student_id):
                if activity_id not in state.pending_peers:
                    return state
                remaining = tuple(
                    peer for peer in state.pending_peers[activity_id] if peer != student_id
                )
                return replace(
                    state, pending_peers=with_entry(state.pending_peers, activity_id, remaining)
                )
            case SummariesDropped(course_ids=course_ids, activity_ids=activity_ids):
                courses = state.course_summaries
                for course_id in course_ids:
                    courses = without_entry(courses, course_id)
                activities = state.activity_summaries
                for activity_id in activity_ids:
                    activities = without_entry(activities, activity_id)
                return replace(state, course_summaries=courses, activity_summaries=activities)
        return super().reduce(state, action)

    # ------------------------------------------------------------------
    # queries

    def course_summary(self, course_id: str) -> CoursePeerReviewSummary | None:
        return self.get_snapshot().course_summaries.get(course_id)

    def activity_summary(self, activity_id: str) -> ActivityPeerReviewSummary | None:
        return self.get_snapshot().activity_summaries.get(activity_id)

    def pending_peers_for(self, activity_id: str) -> Tuple[str, ...]:
        return self.get_snapshot().pending_peers.get(activity_id, ())

    # ------------------------------------------------------------------
    # loads

    async def load_course_summary(
        self,
        course_id: str,
        activity_ids: Sequence[str] | None = None,
        *,
        force: bool = False,
    ) -> CoursePeerReviewSummary | None:
        """Summary of the course's public reviews, or of ``activity_ids`` when given."""
        cached = self.course_summary(course_id)
        if cached is not None and not force:
            return cached
        key = _course_key(course_id)
        ticket = self._begin_request(key)

        async def load() -> CoursePeerReviewSummary:
            if activity_ids is None:
                summary = await self.load_course_peer_review.execute(course_id)
            else:
                summary = await self.compute_course_summary.execute(activity_ids)
            if self._is_current(key, ticket):
                self.dispatch(CourseSummaryLoaded(course_id, summary))
            else:
                LOGGER.debug("Dropping stale course summary for %s", course_id)
            return summary

        return await self._guard(load)

    async def load_activity_summary(
        self, activity_id: str, *, force: bool = False
    ) -> ActivityPeerReviewSummary | None:
        cached = self.activity_summary(activity_id)
        if cached is not None and not force:
            return cached
        key = _activity_key(activity_id)
        ticket = self._begin_request(key)

        async def load() -> ActivityPeerReviewSummary:
            summary = await self.compute_activity_summary.execute(activity_id)
            if self._is_current(key, ticket):
                self.dispatch(ActivitySummaryLoaded(activity_id, summary))
            return summary

        return await self._guard(load)

    async def load_pending_peers(self, activity_id: str, group_id: str) -> Tuple[str, ...]:
        key = _pending_key(activity_id)
        ticket = self._begin_request(key)

        async def load() -> Tuple[str, ...]:
            reviewer_id = await self._require_user_id()
            peers = tuple(await self.list_pending_peers.execute(activity_id, group_id, reviewer_id))
            if self._is_current(key, ticket):
                self.dispatch(PendingPeersLoaded(activity_id, peers))
            return peers

        return await self._guard(load, failure=()) or ()

    # ------------------------------------------------------------------
    # mutations

    async def submit_assessment(
        self,
        *,
        activity_id: str,
        group_id: str,
        student_id: str,
        punctuality: int,
        contributions: int,
        commitment: int,
        attitude: int,
    ) -> Assessment | None:
        async def submit() -> Assessment:
            reviewer_id = await self._require_user_id()
            assessment = await self.submit_assessment_use_case.execute(
                activity_id=activity_id,
                group_id=group_id,
                reviewer_id=reviewer_id,
                student_id=student_id,
                punctuality=punctuality,
                contributions=contributions,
                commitment=commitment,
                attitude=attitude,
            )
            self.dispatch(PeerRated(activity_id, student_id))
            self.event_bus.publish(
                AssessmentSubmittedEvent(
                    activity_id=activity_id,
                    reviewer_id=reviewer_id,
                    student_id=student_id,
                )
            )
            return assessment

        return await self._guard(submit)

    def close(self) -> None:
        self._unsubscribe()

    # ------------------------------------------------------------------
    # events

    def _drop(self, *, course_ids: Sequence[str] = (), activity_ids: Sequence[str] = ()) -> None:
        for course_id in course_ids:
            self._begin_request(_course_key(course_id))
        for activity_id in activity_ids:
            self._begin_request(_activity_key(activity_id))
        self.dispatch(SummariesDropped(tuple(course_ids), tuple(activity_ids)))

    def _on_event(self, event: AppEvent) -> None:
        match event:
            case ActivityChangedEvent(course_id=course_id, activity_id=activity_id):
                self._drop(course_ids=(course_id,), activity_ids=(activity_id,) if activity_id else ())
            case AssessmentSubmittedEvent(activity_id=activity_id):
                stale_courses = tuple(
                    course_id
                    for course_id, summary in self.get_snapshot().course_summaries.items()
                    if activity_id in summary.activity_ids
                )
                self._drop(course_ids=stale_courses, activity_ids=(activity_id,))
            case EnrollmentJoinedEvent() | MembershipJoinedEvent():
                pass
            case _:
                assert_never(event)


__all__ = ["PeerReviewController", "PeerReviewState"]
