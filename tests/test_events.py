"""Tests for the per-object event relay."""

import pytest

from playwire import EventDispatchError
from playwire import EventRelay


def test_dispatch_runs_listeners_in_registration_order() -> None:
    """Listeners receive the arguments in the order they registered."""
    relay: EventRelay = EventRelay()
    calls: list[tuple[str, object]] = []
    relay.on("console", lambda message: calls.append(("first", message)))
    relay.on("console", lambda message: calls.append(("second", message)))

    delivered: int = relay.dispatch("console", "hello")

    assert delivered == 2
    assert calls == [("first", "hello"), ("second", "hello")]


def test_dispatch_without_listeners_returns_zero() -> None:
    """Dispatching an event nobody listens to does nothing."""
    assert EventRelay().dispatch("popup") == 0


def test_once_listener_runs_a_single_time() -> None:
    """A ``once`` registration is consumed by the first dispatch."""
    relay: EventRelay = EventRelay()
    calls: list[int] = []
    relay.once("close", lambda: calls.append(1))

    relay.dispatch("close")
    relay.dispatch("close")

    assert calls == [1]
    assert relay.listener_count("close") == 0


def test_once_listener_survives_reentrant_dispatch() -> None:
    """A nested dispatch of the same event cannot run a ``once`` listener twice."""
    relay: EventRelay = EventRelay()
    calls: list[str] = []

    def nested() -> None:
        calls.append("nested")
        relay.dispatch("close")

    relay.on("close", lambda: calls.append("on"))
    relay.once("close", nested)
    relay.dispatch("close")

    assert calls.count("nested") == 1


def test_remove_listener_also_cancels_pending_once() -> None:
    """Removing a callback drops its pending ``once`` registration."""
    relay: EventRelay = EventRelay()
    calls: list[int] = []

    def listener() -> None:
        calls.append(1)

    relay.once("close", listener)
    relay.remove_listener("close", listener)
    relay.dispatch("close")

    assert calls == []


def test_remove_listener_removes_first_match_only() -> None:
    """Only one registration is removed per call."""
    relay: EventRelay = EventRelay()
    calls: list[int] = []

    def listener() -> None:
        calls.append(1)

    relay.on("load", listener)
    relay.on("load", listener)
    relay.remove_listener("load", listener)
    relay.remove_listener("missing", listener)
    relay.dispatch("load")

    assert calls == [1]


def test_remove_all_listeners() -> None:
    """Listeners can be cleared per event or entirely."""
    relay: EventRelay = EventRelay()
    relay.on("a", lambda: None)
    relay.on("b", lambda: None)

    relay.remove_all_listeners("a")
    assert relay.listener_count("a") == 0
    assert relay.listener_count("b") == 1

    relay.remove_all_listeners()
    assert relay.listener_count("b") == 0


def test_failing_listener_does_not_stop_delivery() -> None:
    """Every listener runs; failures are reported together afterwards."""
    relay: EventRelay = EventRelay()
    calls: list[str] = []

    def broken(_: object) -> None:
        raise ValueError("boom")

    relay.on("console", broken)
    relay.on("console", lambda message: calls.append(str(message)))

    with pytest.raises(EventDispatchError) as exc_info:
        relay.dispatch("console", "text")

    assert calls == ["text"]
    assert exc_info.value.event_name == "console"
    assert len(exc_info.value.errors) == 1
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_listener_added_during_dispatch_waits_for_next_dispatch() -> None:
    """Dispatch works on a snapshot of the listener list."""
    relay: EventRelay = EventRelay()
    calls: list[str] = []

    def late() -> None:
        calls.append("late")

    def adder() -> None:
        calls.append("adder")
        relay.on("tick", late)

    relay.once("tick", adder)
    relay.dispatch("tick")
    relay.dispatch("tick")

    assert calls == ["adder", "late"]
