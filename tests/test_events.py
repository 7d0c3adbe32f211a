from __future__ import annotations

import pytest

from motexfer.events import EventQueue, MoteEvent


def test_next_event_in_order():
    q = EventQueue()
    q.publish(MoteEvent(1, "a"))
    q.publish(MoteEvent(2, "b"))
    assert q.next_event(0.1) == MoteEvent(1, "a")
    assert q.next_event(0.1) == MoteEvent(2, "b")


def test_next_event_times_out():
    with pytest.raises(TimeoutError):
        EventQueue().next_event(0.01)


def test_close_wakes_every_reader():
    q = EventQueue()
    q.publish(MoteEvent(1, "a"))
    q.close()
    q.publish(MoteEvent(1, "late"))
    assert q.next_event(0.1) == MoteEvent(1, "a")
    assert q.next_event(0.1) is None
    assert q.next_event(0.1) is None


def test_is_from():
    assert MoteEvent("7", ".").is_from("7")
    assert not MoteEvent(7, ".").is_from("7")


def test_wake_returns_none_without_closing():
    q = EventQueue()
    q.wake()
    assert q.next_event(0.1) is None
    assert not q.closed
    q.publish(MoteEvent(1, "a"))
    assert q.next_event(0.1) == MoteEvent(1, "a")
