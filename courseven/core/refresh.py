"""TTL-based refresh coordination with a shared in-flight task per key."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict

LOGGER = logging.getLogger("courseven.refresh")

RefreshAction = Callable[[], Awaitable[object]]


def _caller_is_cancelling() -> bool:
    current = asyncio.current_task()
    return current is not None and current.cancelling() > 0


def _consume_result(task: asyncio.Task) -> None:
    # Waiters may all be gone; read the outcome so asyncio does not warn about it.
    if not task.cancelled():
        task.exception()


class RefreshManager:
    """Decides whether a keyed refresh is due and runs it at most once at a time.

    ``run`` skips the action while the last successful completion for the key is
    younger than ``ttl_ms``. Concurrent non-forced callers share the in-flight
    task. A forced caller waits for the in-flight run to settle and then runs the
    action again. Failed or cancelled runs never record a completion.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._last_run: Dict[str, float] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def is_fresh(self, key: str, ttl_ms: float) -> bool:
        last = self._last_run.get(key)
        if last is None:
            return False
        return self._now_ms() - last < ttl_ms

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def last_run(self, key: str) -> float | None:
        """Completion time of the last successful run, in clock milliseconds."""
        return self._last_run.get(key)

    async def run(
        self,
        key: str,
        ttl_ms: float,
        action: RefreshAction,
        *,
        force: bool = False,
    ) -> bool:
        """Run ``action`` for ``key`` unless it is still fresh.

        Returns ``True`` when the action ran (or this call joined a shared run)
        and ``False`` when it was skipped or its run was cancelled.
        """
        while True:
            pending = self._in_flight.get(key)
            if pending is None:
                break
            if not force:
                return await self._await_run(key, pending)
            try:
                await self._await_run(key, pending)
            except Exception as exc:
                LOGGER.debug("Previous refresh of %s failed before forced run: %s", key, exc)

        if not force and self.is_fresh(key, ttl_ms):
            LOGGER.debug("Refresh skipped; %s is still fresh", key)
            return False

        task = asyncio.ensure_future(self._execute(key, action))
        task.add_done_callback(_consume_result)
        self._in_flight[key] = task
        return await self._await_run(key, task)

    async def _execute(self, key: str, action: RefreshAction) -> None:
        try:
            await action()
            self._last_run[key] = self._now_ms()
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

    async def _await_run(self, key: str, task: asyncio.Task) -> bool:
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and not _caller_is_cancelling():
                LOGGER.debug("Refresh of %s was cancelled", key)
                return False
            raise
        return True

    def invalidate(self, key: str) -> None:
        self._last_run.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        for key in [key for key in self._last_run if key.startswith(prefix)]:
            del self._last_run[key]

    def cancel(self, key: str) -> bool:
        """Cancel the in-flight run for ``key``; returns whether one was running."""
        task = self._in_flight.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_prefix(self, prefix: str) -> int:
        keys = [key for key in self._in_flight if key.startswith(prefix)]
        return sum(1 for key in keys if self.cancel(key))

    def clear(self) -> None:
        """Cancel every in-flight run and forget all completions."""
        self.cancel_prefix("")
        self._last_run.clear()


__all__ = ["RefreshAction", "RefreshManager"]
