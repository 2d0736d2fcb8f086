"""In-process event bus used for cross-controller notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Tuple, Type, Union

LOGGER = logging.getLogger("courseven.events")


@dataclass(frozen=True)
class EnrollmentJoinedEvent:
    """A student joined a course with its join code."""

    course_id: str


@dataclass(frozen=True)
class MembershipJoinedEvent:
    """A student joined a group of a course."""

    group_id: str
    course_id: str


@dataclass(frozen=True)
class ActivityChangedEvent:
    """An activity of the course was created, updated, or deleted."""

    course_id: str
    activity_id: str | None = None


@dataclass(frozen=True)
class AssessmentSubmittedEvent:
    activity_id: str
    reviewer_id: str
    student_id: str


AppEvent = Union[
    EnrollmentJoinedEvent,
    MembershipJoinedEvent,
    ActivityChangedEvent,
    AssessmentSubmittedEvent,
]

EVENT_TYPES: Tuple[type, ...] = (
    EnrollmentJoinedEvent,
    MembershipJoinedEvent,
    ActivityChangedEvent,
    AssessmentSubmittedEvent,
)

EventHandler = Callable[[AppEvent], None]


def event_name(event: AppEvent) -> str:
    """Stable wire-friendly name for ``event`` (used by the audit log)."""
    return type(event).__name__.removesuffix("Event")


@dataclass(eq=False)
class _Subscription:
    handler: EventHandler
    event_types: Tuple[Type, ...] | None

    def accepts(self, event: AppEvent) -> bool:
        return self.event_types is None or isinstance(event, self.event_types)


class AppEventBus:
    """Synchronous fan-out of :data:`AppEvent` values to subscribers.

    Handlers run in registration order on the publisher's call stack. A handler
    that raises is logged and skipped; the remaining handlers still run. There is
    no buffering, replay, or acknowledgement.
    """

    def __init__(self) -> None:
        self._subscriptions: List[_Subscription] = []

    def subscribe(
        self,
        handler: EventHandler,
        *event_types: Type,
    ) -> Callable[[], None]:
        """Register ``handler`` and return a callable that removes it again.

        When ``event_types`` are given the handler only sees events of those types.
        """
        for event_type in event_types:
            if event_type not in EVENT_TYPES:
                raise TypeError(f"Unknown event type: {event_type!r}")
        subscription = _Subscription(handler, tuple(event_types) or None)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def publish(self, event: AppEvent) -> None:
        if not isinstance(event, EVENT_TYPES):
            raise TypeError(f"Unsupported event: {event!r}")
        for subscription in list(self._subscriptions):
            if not subscription.accepts(event):
                continue
            try:
                subscription.handler(event)
            except Exception:
                LOGGER.exception("Event handler failed for %s", event_name(event))

    def dispose(self) -> None:
        self._subscriptions.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


__all__ = [
    "ActivityChangedEvent",
    "AppEvent",
    "AppEventBus",
    "AssessmentSubmittedEvent",
    "EVENT_TYPES",
    "EnrollmentJoinedEvent",
    "EventHandler",
    "MembershipJoinedEvent",
    "event_name",
]
