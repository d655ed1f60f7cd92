"""Event bus for streaming quote and booking lifecycle events over SSE."""

import asyncio
import logging
from typing import Dict, Any, AsyncGenerator, Optional
from datetime import datetime

logger = logging.getLogger(__name__)


class LifecycleEvent:
    """Event types published by the quote and booking services."""
    QUOTE_REQUESTED = "quote_requested"
    REVISION_SENT = "quote_revision_sent"
    QUOTE_ACCEPTED = "quote_accepted"
    QUOTE_REJECTED = "quote_rejected"
    QUOTE_FINALISED = "quote_finalised"
    TOUR_REQUESTED = "tour_requested"
    DEPOSIT_CREATED = "deposit_created"
    PAYMENT_CANCELLED = "payment_cancelled"
    PAYMENT_FAILED = "payment_failed"
    DEPOSIT_PAID = "deposit_paid"
    QUOTE_BOOKED = "quote_booked"
    SETTLEMENT_INCONSISTENT = "settlement_inconsistent"


class EventBus:
    """
    In-memory event bus using bounded asyncio.Queue per subscriber.

    Supports Server-Sent Events (SSE) streaming to multiple clients. A
    subscriber that stops draining its queue misses events rather than
    blocking publishers.
    """

    def __init__(self, max_queue_size: int = 100):
        self._subscribers: list[tuple[asyncio.Queue, Optional[int]]] = []
        self._max_queue_size = max_queue_size

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event_type: str, data: Dict[str, Any]) -> None:
        """
        Publish an event to all subscribers.

        Args:
            event_type: One of the LifecycleEvent values
            data: Event payload; a "quote_id" key routes it to filtered subscribers
        """
        event = {
            "type": event_type,
            "data": data,
            "timestamp": datetime.utcnow().isoformat()
        }

        quote_id = data.get("quote_id")
        for queue, quote_filter in list(self._subscribers):
            if quote_filter is not None and quote_filter != quote_id:
                continue
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Dropping {event_type} event for slow subscriber")

    async def subscribe(self, quote_id: Optional[int] = None) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Subscribe to events and receive them as an async generator.

        Args:
            quote_id: Only receive events for this quote request

        Yields:
            Event dictionaries containing type, data, and timestamp

        Usage:
            async for event in event_bus.subscribe(quote_id=42):
                print(event)
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        entry = (queue, quote_id)
        self._subscribers.append(entry)

        try:
            while True:
                event = await queue.get()
                yield event
        finally:
            # Client disconnected
            if entry in self._subscribers:
                self._subscribers.remove(entry)


# Global event bus instance
event_bus = EventBus()
