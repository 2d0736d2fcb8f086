from __future__ import annotations

import asyncio
import logging
from typing import Set, assert_never

from courseven.controllers.course import CourseController
from courseven.controllers.enrollment import EnrollmentController
from courseven.core.config import RefreshConfig
from courseven.core.events import (
    ActivityChangedEvent,
    AppEvent,
    AppEventBus,
    AssessmentSubmittedEvent,
    EnrollmentJoinedEvent,
    MembershipJoinedEvent,
)
from courseven.core.refresh import RefreshManager

LOGGER = logging.getLogger("courseven.controllers.home")

TEACHING_KEY = "home:teaching"
LEARNING_KEY = "home:learning"


class HomeRevalidator:
    """Keeps the home lists (courses taught, courses joined) fresh.

    :meth:`revalidate` reloads both lists unless they were loaded within the
    home TTL. Joining a course forces a reload. :meth:`start` adds periodic
    polling; :meth:`close` stops everything this object scheduled.
    """

    def __init__(
        self,
        *,
        course_controller: CourseController,
        enrollment_controller: EnrollmentController,
        refresh_manager: RefreshManager,
        event_bus: AppEventBus,
        refresh_config: RefreshConfig | None = None,
    ) -> None:
        config = refresh_config or RefreshConfig()
        self.course_controller = course_controller
        self.enrollment_controller = enrollment_controller
        self.refresh_manager = refresh_manager
        self.ttl_ms = config.home_ttl_ms
        self.poll_interval = config.home_poll_interval_ms / 1000
        self._tasks: Set[asyncio.Task] = set()
        self._poller: asyncio.Task | None = None
        self._unsubscribe = event_bus.subscribe(self._on_event)

    async def revalidate(self, *, force: bool = False) -> None:
        await asyncio.gather(
            self.refresh_manager.run(
                TEACHING_KEY,
                self.ttl_ms,
                lambda: self.course_controller.load_my_teaching_courses(force=force),
                force=force,
            ),
            self.refresh_manager.run(
                LEARNING_KEY,
                self.ttl_ms,
                lambda: self.enrollment_controller.load_my_enrollments(force=force),
                force=force,
            ),
        )

    def start(self) -> None:
        """Revalidate now and then on every poll interval."""
        if self._poller is None or self._poller.done():
            self._poller = asyncio.get_running_loop().create_task(self._poll())

    async def _poll(self) -> None:
        while True:
            try:
                await self.revalidate()
            except Exception:
                LOGGER.exception("Home revalidation failed")
            await asyncio.sleep(self.poll_interval)

    def close(self) -> None:
        self._unsubscribe()
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
        for task in list(self._tasks):
            task.cancel()
        self.refresh_manager.cancel_prefix("home:")

    def _schedule_forced(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.warning("Enrollment joined outside an event loop; home not revalidated")
            return
        task = loop.create_task(self.revalidate(force=True))
        self._tasks.add(task)
        task.add_done_callback(self._forced_done)

    def _forced_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.error("Forced home revalidation failed", exc_info=task.exception())

    @property
    def pending(self) -> Set[asyncio.Task]:
        return set(self._tasks)

    def _on_event(self, event: AppEvent) -> None:
        match event:
            case EnrollmentJoinedEvent(course_id=course_id):
                LOGGER.debug("Enrollment in %s joined; forcing home revalidation", course_id)
                self._schedule_forced()
            case MembershipJoinedEvent() | ActivityChangedEvent() | AssessmentSubmittedEvent():
                pass
            case _:
                assert_never(event)


__all__ = ["HomeRevalidator", "LEARNING_KEY", "TEACHING_KEY"]
