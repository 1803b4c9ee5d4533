import asyncio

import pytest
from prometheus_client import REGISTRY

from fangio_service.event_bus import EventBus, QueueSubscriber
from fangio_service.schemas import AuditEvent, AuditEventType


def _event(plan_id="plan-1", event_type=AuditEventType.STEP_STARTED):
    return AuditEvent(plan_id=plan_id, type=event_type, step_id="step-1")


def test_publish_fans_out_to_every_subscriber_of_the_plan():
    bus = EventBus()
    a, b, other = [], [], []
    bus.subscribe("plan-1", a.append)
    bus.subscribe("plan-1", b.append)
    bus.subscribe("plan-2", other.append)

    event = _event()
    bus.publish(event)

    assert a == [event]
    assert b == [event]
    assert other == []


def test_unsubscribe_drops_empty_registry():
    bus = EventBus()
    handler = lambda e: None  # noqa: E731
    bus.subscribe("plan-1", handler)
    assert bus.subscriber_count("plan-1") == 1

    bus.unsubscribe("plan-1", handler)
    assert bus.subscriber_count("plan-1") == 0
    assert "plan-1" not in bus._subscribers

    # unknown handler / plan is a no-op
    bus.unsubscribe("plan-1", handler)
    bus.unsubscribe("plan-9", handler)


def test_repeat_subscribe_keeps_gauge_balanced():
    bus = EventBus()
    handler = lambda e: None  # noqa: E731
    before = REGISTRY.get_sample_value("event_subscribers")

    bus.subscribe("plan-1", handler)
    bus.subscribe("plan-1", handler)
    assert bus.subscriber_count("plan-1") == 1
    assert REGISTRY.get_sample_value("event_subscribers") == before + 1

    bus.unsubscribe("plan-1", handler)
    assert REGISTRY.get_sample_value("event_subscribers") == before


def test_events_before_subscription_are_not_redelivered():
    bus = EventBus()
    bus.publish(_event())
    seen = []
    bus.subscribe("plan-1", seen.append)
    assert seen == []


def test_failing_handler_does_not_block_others():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("subscriber bug")

    bus.subscribe("plan-1", broken)
    bus.subscribe("plan-1", seen.append)
    bus.publish(_event())
    assert len(seen) == 1


def test_handler_may_unsubscribe_itself_during_publish():
    bus = EventBus()
    calls = []

    def once(event):
        calls.append(event)
        bus.unsubscribe("plan-1", once)

    bus.subscribe("plan-1", once)
    bus.publish(_event())
    bus.publish(_event())
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_queue_subscriber_drops_newest_when_full():
    sub = QueueSubscriber("plan-1", maxsize=2)
    first, second, third = _event(), _event(), _event(event_type=AuditEventType.STEP_FINISHED)
    sub(first)
    sub(second)
    sub(third)

    assert sub.dropped == 1
    assert await sub.get(timeout=0.1) is first
    assert await sub.get(timeout=0.1) is second
    assert await sub.get(timeout=0.05) is None


@pytest.mark.asyncio
async def test_queue_subscriber_wakes_on_publish():
    bus = EventBus()
    sub = QueueSubscriber("plan-1")
    bus.subscribe("plan-1", sub)

    waiter = asyncio.create_task(sub.get(timeout=1))
    await asyncio.sleep(0)
    event = _event()
    bus.publish(event)
    assert await waiter is event
