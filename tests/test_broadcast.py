"""Tests for the last-value-wins broadcast."""

from __future__ import annotations

import threading

from autotrack.broadcast import LastValue


def test_new_subscriber_sees_current_value():
    lv = LastValue("a")
    sub = lv.subscribe()
    assert sub.poll() == "a"
    assert sub.poll() is None


def test_slow_subscriber_only_sees_latest():
    lv = LastValue(0)
    sub = lv.subscribe()
    sub.poll()
    for i in range(1, 6):
        lv.publish(i)
    assert sub.poll() == 5
    assert sub.poll() is None
    assert lv.value == 5


def test_close_stops_delivery():
    lv = LastValue(0)
    sub = lv.subscribe()
    assert lv.subscriber_count == 1
    sub.close()
    assert lv.subscriber_count == 0
    lv.publish(1)
    assert sub.closed


def test_wait_returns_value_published_from_another_thread():
    lv = LastValue("idle")
    sub = lv.subscribe()
    sub.poll()
    threading.Timer(0.05, lv.publish, args=("busy",)).start()
    assert sub.wait(timeout=2.0) == "busy"
    assert sub.wait(timeout=0.01) is None
