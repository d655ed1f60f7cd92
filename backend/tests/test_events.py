"""Tests for the lifecycle event bus."""

import asyncio

import pytest

from quotebook.core.events import EventBus, LifecycleEvent


async def _next(stream):
    return await stream.__anext__()


async def _start(stream):
    """Start a subscription so it is registered before anything is published."""
    task = asyncio.create_task(_next(stream))
    await asyncio.sleep(0)
    return task


@pytest.mark.asyncio
async def test_subscriber_filtered_by_quote():
    bus = EventBus()
    stream = bus.subscribe(quote_id=42)
    pending = await _start(stream)
    assert bus.subscriber_count == 1

    await bus.publish(LifecycleEvent.DEPOSIT_PAID, {"quote_id": 7, "deposit_id": 1})
    await bus.publish(LifecycleEvent.QUOTE_BOOKED, {"quote_id": 42, "deposit_id": 2})

    event = await asyncio.wait_for(pending, timeout=1)
    assert event["type"] == "quote_booked"
    assert event["data"] == {"quote_id": 42, "deposit_id": 2}
    assert "timestamp" in event

    await stream.aclose()
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_slow_subscriber_drops_events():
    bus = EventBus(max_queue_size=1)
    stream = bus.subscribe()
    pending = await _start(stream)

    # Nothing is drained between publishes, so only the first event fits
    for deposit_id in range(3):
        await bus.publish(LifecycleEvent.DEPOSIT_CREATED, {"quote_id": 42, "deposit_id": deposit_id})

    first = await asyncio.wait_for(pending, timeout=1)
    assert first["data"]["deposit_id"] == 0

    await bus.publish(LifecycleEvent.DEPOSIT_CREATED, {"quote_id": 42, "deposit_id": 3})
    second = await asyncio.wait_for(_next(stream), timeout=1)
    assert second["data"]["deposit_id"] == 3

    await stream.aclose()
