"""Tests for listener registration and the registry mutators."""

from __future__ import annotations

import pytest

from bridgebus.domain.bus import EventBus
from bridgebus.domain.errors import ConfigurationError
from bridgebus.repos.memory import ListenerRegistry


@pytest.fixture()
def registry() -> ListenerRegistry:
    return ListenerRegistry()


def _named(name: str):
    def listener(payload):
        return (name, payload)

    listener.__name__ = name
    return listener


# ---------------------------------------------------------------------------
# add / remove
# ---------------------------------------------------------------------------


def test_add_then_remove_leaves_entry_empty(registry):
    listener = _named("f")
    registry.add("e", listener)
    registry.remove("e", listener)

    assert registry.get("e") == ()
    assert registry.has_listeners("e") is False


def test_remove_drops_every_equal_entry(registry):
    f, g = _named("f"), _named("g")
    registry.add("e", f)
    registry.add("e", g)
    registry.add("e", f)

    registry.remove("e", f)

    assert registry.get("e") == (g,)


def test_remove_on_unknown_event_is_a_noop(registry):
    registry.remove("missing", _named("f"))
    assert registry.get("missing") == ()


def test_get_returns_a_snapshot(registry):
    f = _named("f")
    registry.add("e", f)
    snapshot = registry.get("e")
    registry.add("e", _named("g"))

    assert snapshot == (f,)


# ---------------------------------------------------------------------------
# transform
# ---------------------------------------------------------------------------


def test_transform_replaces_each_listener_in_order():
    bus = EventBus(queue_limit=4)
    calls: list = []
    bus.add_listener("e", lambda p: calls.append(("a", p)))
    bus.add_listener("e", lambda p: calls.append(("b", p)))

    def loud(listener):
        def wrapped(payload):
            listener(str(payload).upper())

        return wrapped

    bus.transform("e", loud)
    bus.broadcast("e", "hi")

    assert calls == [("a", "HI"), ("b", "HI")]
    assert len(bus.listeners("e")) == 2


def test_transform_failure_propagates_and_keeps_entry(registry):
    f, g = _named("f"), _named("g")
    registry.add("e", f)
    registry.add("e", g)
    registry.add("other", f)

    def explode_on_g(listener):
        if listener is g:
            raise ValueError("cannot wrap g")
        return _named("wrapped")

    with pytest.raises(ValueError):
        registry.transform("e", explode_on_g)

    assert registry.get("e") == (f, g)
    assert registry.get("other") == (f,)


def test_transform_unknown_event_is_a_noop(registry):
    registry.transform("missing", lambda cb: cb)
    assert registry.get("missing") == ()


# ---------------------------------------------------------------------------
# filter
# ---------------------------------------------------------------------------


def test_filter_keeps_truthy_matches(registry):
    keep, drop = _named("keep_me"), _named("drop_me")
    registry.add("e", keep)
    registry.add("e", drop)

    registry.filter("e", lambda cb: cb.__name__.startswith("keep"))

    assert registry.get("e") == (keep,)


def test_filter_treats_predicate_errors_as_false(registry):
    f, g = _named("f"), _named("g")
    registry.add("e", f)
    registry.add("e", g)

    def picky(listener):
        if listener is f:
            raise RuntimeError("no opinion")
        return 1

    registry.filter("e", picky)

    assert registry.get("e") == (g,)


def test_conditional_filter_on_bus():
    bus = EventBus(queue_limit=4)
    f, g = _named("f"), _named("g")
    bus.add_listener("e", f)
    bus.add_listener("e", g)

    bus.conditional_filter("e", lambda cb: cb is g)

    assert bus.listeners("e") == (g,)


# ---------------------------------------------------------------------------
# pick
# ---------------------------------------------------------------------------


def test_pick_keeps_first_n_in_registration_order():
    bus = EventBus(queue_limit=4)
    listeners = [_named(f"l{i}") for i in range(5)]
    for listener in listeners:
        bus.add_listener("e", listener)

    bus.pick("e", 2)

    assert bus.listeners("e") == tuple(listeners[:2])


def test_pick_larger_than_entry_keeps_everything(registry):
    f = _named("f")
    registry.add("e", f)
    registry.pick("e", 10)
    assert registry.get("e") == (f,)


def test_pick_zero_empties_entry(registry):
    registry.add("e", _named("f"))
    registry.pick("e", 0)
    assert registry.get("e") == ()


def test_pick_negative_is_rejected(registry):
    with pytest.raises(ConfigurationError):
        registry.pick("e", -1)
