from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace

import pytest

from courseven.core.store import (
    Action,
    Controller,
    ControllerState,
    ErrorRaised,
    ObservableStore,
)


@dataclass(frozen=True)
class CounterState(ControllerState):
    value: int = 0


@dataclass(frozen=True)
class Incremented(Action):
    by: int = 1


class CounterController(Controller[CounterState]):
    def __init__(self) -> None:
        super().__init__(CounterState())

    def reduce(self, state: CounterState, action: Action) -> CounterState:
        match action:
            case Incremented(by=by):
                return replace(state, value=state.value + by)
        return super().reduce(state, action)


def test_every_update_notifies_once() -> None:
    store = ObservableStore(0)
    seen: list[int] = []
    store.subscribe(seen.append)

    for _ in range(5):
        store._set_state(lambda value: value + 1)

    assert seen == [1, 2, 3, 4, 5]
    assert store.get_snapshot() == 5


def test_unsubscribe_during_notification_keeps_other_listeners() -> None:
    store = ObservableStore("a")
    calls: list[str] = []
    unsubscribe_first = None

    def first(state: str) -> None:
        calls.append(f"first:{state}")
        unsubscribe_first()

    def second(state: str) -> None:
        calls.append(f"second:{state}")

    unsubscribe_first = store.subscribe(first)
    store.subscribe(second)

    store._set_state(lambda _: "b")
    store._set_state(lambda _: "c")

    assert calls == ["first:b", "second:b", "second:c"]
    assert store.listener_count == 1


def test_failing_listener_does_not_block_others() -> None:
    store = ObservableStore(0)
    seen: list[int] = []

    def broken(_: int) -> None:
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    store.subscribe(seen.append)
    store._set_state(lambda value: value + 1)

    assert seen == [1]


def test_unsubscribe_removes_only_its_own_registration() -> None:
    store = ObservableStore(0)
    seen: list[int] = []

    unsubscribe_first = store.subscribe(seen.append)
    store.subscribe(seen.append)
    store._set_state(lambda value: value + 1)
    assert seen == [1, 1]

    unsubscribe_first()
    unsubscribe_first()
    store._set_state(lambda value: value + 1)

    assert seen == [1, 1, 2]
    assert store.listener_count == 1


def test_unsubscribe_twice_is_harmless() -> None:
    store = ObservableStore(0)
    unsubscribe = store.subscribe(lambda _: None)
    unsubscribe()
    unsubscribe()
    assert store.listener_count == 0


def test_dispatch_routes_custom_and_shared_actions() -> None:
    controller = CounterController()
    controller.dispatch(Incremented(by=3))
    controller.dispatch(ErrorRaised("bad"))

    state = controller.get_snapshot()
    assert state.value == 3
    assert state.error == "bad"

    controller.clear_error()
    assert controller.get_snapshot().error is None


def test_unknown_action_is_rejected() -> None:
    @dataclass(frozen=True)
    class Stray(Action):
        pass

    with pytest.raises(TypeError):
        CounterController().dispatch(Stray())


def test_guard_tracks_loading_and_errors() -> None:
    controller = CounterController()
    observed: list[bool] = []
    controller.subscribe(lambda state: observed.append(state.is_loading))

    async def ok() -> int:
        return 7

    async def boom() -> int:
        raise ValueError("backend down")

    assert asyncio.run(controller._guard(ok)) == 7
    assert observed == [True, False]

    assert asyncio.run(controller._guard(boom, failure=-1)) == -1
    state = controller.get_snapshot()
    assert state.error == "backend down"
    assert state.is_loading is False


def test_silent_guard_leaves_state_untouched() -> None:
    controller = CounterController()

    async def boom() -> int:
        raise ValueError("lookup failed")

    result = asyncio.run(controller._guard(boom, track_loading=False, silent=True))

    assert result is None
    assert controller.get_snapshot() == CounterState()


def test_nested_guards_keep_loading_until_last_finishes() -> None:
    controller = CounterController()

    async def scenario() -> None:
        release = asyncio.Event()

        async def slow() -> None:
            await release.wait()

        async def fast() -> None:
            return None

        slow_task = asyncio.create_task(controller._guard(slow))
        await asyncio.sleep(0)
        await controller._guard(fast)
        assert controller.get_snapshot().is_loading is True
        release.set()
        await slow_task
        assert controller.get_snapshot().is_loading is False

    asyncio.run(scenario())


def test_request_tickets_supersede_older_ones() -> None:
    controller = CounterController()
    first = controller._begin_request("k")
    second = controller._begin_request("k")
    other = controller._begin_request("other")

    assert not controller._is_current("k", first)
    assert controller._is_current("k", second)
    assert controller._is_current("other", other)
