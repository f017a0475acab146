import threading

import pytest

from bus.event_bus import EventBus
from bus.qos import QoSProfile, QueuedListener, Reliability
from bus.topics import TOPIC_REGISTRY, get_module_topics

VALUES_TOPIC = "tests.values"


def _values_prototype(value: int) -> None:
    pass


@pytest.fixture
def values_bus(bus: EventBus) -> EventBus:
    bus.declare_topic(VALUES_TOPIC, _values_prototype)
    return bus


def test_qos_profile_helpers():
    profile = QoSProfile.keep_last(32).best_effort()
    assert profile.depth == 32
    assert profile.reliability is Reliability.BEST_EFFORT
    assert profile.queued
    assert not QoSProfile().queued
    with pytest.raises(ValueError):
        QoSProfile(depth=0)


def test_reliable_subscription_delivers_synchronously(values_bus):
    received = []
    sub = values_bus.subscribe(VALUES_TOPIC, lambda value: received.append(value))

    values_bus.publish(VALUES_TOPIC, value=1)
    values_bus.publish(VALUES_TOPIC, value=2)

    assert received == [1, 2]
    assert sub.dispatcher is None
    assert sub.dropped == 0
    assert sub.wait_idle(0)
    sub.unsubscribe()
    values_bus.publish(VALUES_TOPIC, value=3)
    assert received == [1, 2]


def test_best_effort_subscription_delivers_in_order_on_dispatcher_thread(values_bus):
    received = []
    threads = set()

    def _listener(value):
        received.append(value)
        threads.add(threading.current_thread().name)

    sub = values_bus.subscribe(VALUES_TOPIC, _listener, qos=QoSProfile.keep_last(32).best_effort())
    for value in range(10):
        values_bus.publish(VALUES_TOPIC, value=value)

    assert sub.wait_idle(2.0)
    assert received == list(range(10))
    assert threads == {f"bus:{VALUES_TOPIC}"}
    sub.unsubscribe()
    assert not sub.dispatcher.alive


def test_best_effort_subscription_reports_overflow(values_bus):
    started = threading.Event()
    release = threading.Event()

    def _listener(value):
        if value == 0:
            started.set()
            release.wait(2.0)

    sub = values_bus.subscribe(VALUES_TOPIC, _listener, qos=QoSProfile.keep_last(2).best_effort())
    try:
        values_bus.publish(VALUES_TOPIC, value=0)
        assert started.wait(1.0)
        for value in range(1, 6):
            values_bus.publish(VALUES_TOPIC, value=value)
        assert sub.dropped == 3
    finally:
        release.set()
        sub.unsubscribe()


def test_listener_bookkeeping(values_bus):
    def _listener(value):
        pass

    sub = values_bus.subscribe(VALUES_TOPIC, _listener, qos=QoSProfile(depth=4).best_effort())
    assert values_bus.has_listeners(VALUES_TOPIC)
    assert values_bus.listener_count(VALUES_TOPIC) == 1
    rendered = values_bus.list_listeners(VALUES_TOPIC)[VALUES_TOPIC]
    assert rendered == ["queued(test_listener_bookkeeping.<locals>._listener)"]
    sub.unsubscribe()
    assert values_bus.listener_count(VALUES_TOPIC) == 0


def test_queued_listener_drops_oldest_when_full():
    started = threading.Event()
    release = threading.Event()
    received = []

    def _listener(value):
        received.append(value)
        if value == 0:
            started.set()
            release.wait(2.0)

    queued = QueuedListener(_listener, depth=3)
    try:
        queued(value=0)
        assert started.wait(1.0)
        for value in range(1, 11):
            queued(value=value)
        assert queued.dropped == 7
        release.set()
        assert queued.join(2.0)
        assert received == [0, 8, 9, 10]
    finally:
        release.set()
        queued.stop()


def test_queued_listener_survives_listener_errors(caplog):
    received = []

    def _listener(value):
        if value == "bad":
            raise RuntimeError("listener failed")
        received.append(value)

    queued = QueuedListener(_listener, depth=8)
    try:
        queued(value="bad")
        queued(value="good")
        assert queued.join(2.0)
    finally:
        queued.stop()
    assert received == ["good"]
    assert "listener failed" in caplog.text


def test_queued_listener_ignores_messages_after_stop():
    received = []
    queued = QueuedListener(lambda value: received.append(value), depth=2)
    queued.stop()
    queued.stop()
    queued(value=1)
    assert queued.join(0.1)
    assert received == []


def test_udp_sender_topics_are_registered():
    import drivers.udp_sender.node  # noqa: F401

    profile = get_module_topics("udp_sender")
    assert profile is TOPIC_REGISTRY["udp_sender"]
    assert "udp_write" in profile["subscribe"]
    assert "drivers.udp_sender.status" in profile["publish"]
