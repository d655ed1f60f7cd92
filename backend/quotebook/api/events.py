"""Events API router for SSE lifecycle updates and booking statistics."""

import json
from typing import Dict, Any, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sse_starlette.sse import EventSourceResponse

from quotebook.database import get_db
from quotebook.core.events import event_bus
from quotebook.models.booking_deposit import BookingDeposit, PaymentStatus
from quotebook.models.quote_request import QuoteRequest

router = APIRouter(tags=["events"])


@router.get("/events")
async def event_stream(
    request: Request,
    quote_id: Optional[int] = Query(None, description="Only stream events for this quote request"),
):
    """
    Server-Sent Events (SSE) stream of quote and booking lifecycle events.

    Usage:
        const eventSource = new EventSource('/api/events?quote_id=42');
        eventSource.addEventListener('quote_booked', (e) => {
            console.log(JSON.parse(e.data));
        });
    """
    async def generate():
        async for event in event_bus.subscribe(quote_id=quote_id):
            # Check if client disconnected
            if await request.is_disconnected():
                break

            yield {
                "event": event["type"],
                "data": json.dumps(event["data"])
            }

    return EventSourceResponse(generate())


@router.get("/stats")
async def get_booking_stats(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """
    Quote and deposit counts by status.
    """
    quote_rows = await db.execute(
        select(QuoteRequest.status, func.count()).group_by(QuoteRequest.status)
    )
    deposit_rows = await db.execute(
        select(BookingDeposit.payment_status, func.count()).group_by(BookingDeposit.payment_status)
    )
    paid_total = await db.execute(
        select(func.coalesce(func.sum(BookingDeposit.amount), 0))
        .where(BookingDeposit.payment_status == PaymentStatus.PAID)
    )

    return {
        "quotes_by_status": {status.value: count for status, count in quote_rows.all()},
        "deposits_by_status": {status.value: count for status, count in deposit_rows.all()},
        "paid_deposit_total": str(paid_total.scalar()),
        "live_subscribers": event_bus.subscriber_count,
    }
