"""
Tests for the in-process event bus.
"""
import logging
import threading

import pytest

from smoothsend_sdk.events import EventBus
from smoothsend_sdk.models import EventType, TransferEvent


def make_event(event_type=EventType.INITIATED):
    return TransferEvent(type=event_type, data={}, timestamp=1, chain="avalanche")


def test_listeners_receive_events_in_registration_order():
    bus = EventBus()
    received = []
    bus.subscribe(lambda e: received.append(("first", e.type)))
    bus.subscribe(lambda e: received.append(("second", e.type)))

    bus.publish(make_event())
    bus.publish(make_event(EventType.SIGNED))

    assert received == [
        ("first", EventType.INITIATED),
        ("second", EventType.INITIATED),
        ("first", EventType.SIGNED),
        ("second", EventType.SIGNED),
    ]


def test_failing_listener_is_isolated(caplog):
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("listener bug")

    bus.subscribe(broken)
    bus.subscribe(received.append)

    with caplog.at_level(logging.ERROR):
        bus.publish(make_event())

    assert len(received) == 1
    assert "Error in event listener broken" in caplog.text
    assert "listener bug" in caplog.text


def test_unsubscribe():
    bus = EventBus()
    received = []
    bus.subscribe(received.append)
    assert bus.unsubscribe(received.append) is True
    assert bus.unsubscribe(received.append) is False
    bus.publish(make_event())
    assert received == []


def test_subscribe_requires_callable():
    with pytest.raises(TypeError):
        EventBus().subscribe("not callable")


def test_subscribe_during_publish_applies_to_next_event():
    bus = EventBus()
    late = []

    def subscriber(event):
        bus.subscribe(late.append)

    bus.subscribe(subscriber)
    bus.publish(make_event())
    assert late == []

    bus.unsubscribe(subscriber)
    bus.publish(make_event(EventType.SIGNED))
    assert [e.type for e in late] == [EventType.SIGNED]


def test_clear():
    bus = EventBus()
    bus.subscribe(lambda e: None)
    bus.subscribe(lambda e: None)
    assert bus.listener_count == 2
    bus.clear()
    assert bus.listener_count == 0


def test_concurrent_subscribe_and_publish():
    bus = EventBus()
    counts = []
    lock = threading.Lock()

    def listener(event):
        with lock:
            counts.append(event)

    def register():
        for _ in range(50):
            bus.subscribe(listener)

    def publish():
        for _ in range(50):
            bus.publish(make_event())

    threads = [threading.Thread(target=register), threading.Thread(target=publish)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert bus.listener_count == 50
