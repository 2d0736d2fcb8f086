"""Observable single-writer stores that back every controller."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Dict, Generic, List, TypeVar

from courseven.core.errors import error_message

LOGGER = logging.getLogger("courseven.store")

S = TypeVar("S")
T = TypeVar("T")
StateListener = Callable[[S], None]


@dataclass(eq=False)
class _Registration(Generic[S]):
    listener: StateListener[S]


class ObservableStore(Generic[S]):
    """Holds one immutable state value and notifies listeners on every replacement."""

    def __init__(self, initial_state: S) -> None:
        self._state = initial_state
        self._registrations: List[_Registration[S]] = []

    def subscribe(self, listener: StateListener[S]) -> Callable[[], None]:
        registration = _Registration(listener)
        self._registrations.append(registration)

        def unsubscribe() -> None:
            if registration in self._registrations:
                self._registrations.remove(registration)

        return unsubscribe

    def get_snapshot(self) -> S:
        return self._state

    @property
    def listener_count(self) -> int:
        return len(self._registrations)

    def _set_state(self, updater: Callable[[S], S]) -> S:
        self._state = updater(self._state)
        state = self._state
        for registration in list(self._registrations):
            try:
                registration.listener(state)
            except Exception:
                LOGGER.exception("State listener failed in %s", type(self).__name__)
        return state


@dataclass(frozen=True)
class ControllerState:
    is_loading: bool = False
    error: str | None = None


@dataclass(frozen=True)
class Action:
    """Base class for store actions."""


@dataclass(frozen=True)
class LoadingStarted(Action):
    pass


@dataclass(frozen=True)
class LoadingFinished(Action):
    pass


@dataclass(frozen=True)
class ErrorRaised(Action):
    message: str


@dataclass(frozen=True)
class ErrorCleared(Action):
    pass


CS = TypeVar("CS", bound=ControllerState)


class Controller(ObservableStore[CS]):
    """Store whose only writer is :meth:`dispatch`.

    Subclasses extend :meth:`reduce` for their own actions and fall back to the
    base implementation for the shared loading/error actions. Loads that target
    the same key take a ticket from :meth:`_begin_request`; a result whose ticket
    is no longer current is dropped by the caller.
    """

    def __init__(self, initial_state: CS) -> None:
        super().__init__(initial_state)
        self._generations: Dict[str, int] = {}
        self._loading_depth = 0

    def reduce(self, state: CS, action: Action) -> CS:
        match action:
            case LoadingStarted():
                return replace(state, is_loading=True, error=None)
            case LoadingFinished():
                return replace(state, is_loading=False)
            case ErrorRaised(message=message):
                return replace(state, is_loading=self._loading_depth > 0, error=message)
            case ErrorCleared():
                return replace(state, error=None)
        raise TypeError(f"{type(self).__name__} cannot handle {type(action).__name__}")

    def dispatch(self, action: Action) -> CS:
        return self._set_state(lambda state: self.reduce(state, action))

    def clear_error(self) -> None:
        self.dispatch(ErrorCleared())

    # ------------------------------------------------------------------
    # request sequencing

    def _begin_request(self, key: str) -> int:
        ticket = self._generations.get(key, 0) + 1
        self._generations[key] = ticket
        return ticket

    def _is_current(self, key: str, ticket: int) -> bool:
        return self._generations.get(key) == ticket

    # ------------------------------------------------------------------

    async def _guard(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        failure: T | None = None,
        track_loading: bool = True,
        silent: bool = False,
    ) -> T | None:
        """Run ``operation`` and convert any failure into ``state.error``.

        Returns the operation's result, or ``failure`` when it raised. A
        ``silent`` guard only logs the failure and leaves the state untouched.
        """
        if track_loading:
            self._loading_depth += 1
            self.dispatch(LoadingStarted())
        try:
            result = await operation()
        except Exception as exc:
            if track_loading:
                self._loading_depth -= 1
                track_loading = False
            LOGGER.warning(
                "%s operation failed: %s",
                type(self).__name__,
                exc,
                extra={"error_type": type(exc).__name__},
            )
            if not silent:
                self.dispatch(ErrorRaised(error_message(exc)))
            return failure
        finally:
            # Cancellation skips the except branch; still release the loading flag.
            if track_loading:
                self._loading_depth -= 1
                if self._loading_depth == 0:
                    self.dispatch(LoadingFinished())
        return result


__all__ = [
    "Action",
    "Controller",
    "ControllerState",
    "ErrorCleared",
    "ErrorRaised",
    "LoadingFinished",
    "LoadingStarted",
    "ObservableStore",
    "StateListener",
]
