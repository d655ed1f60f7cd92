"""API dependencies for caller identity, database access and services."""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from quotebook.database import get_db
from quotebook.services.booking_orchestrator import BookingOrchestrator
from quotebook.services.booking_store import BookingStore
from quotebook.services.payment_gateway import payfast_client


async def get_current_client_id(
    x_client_id: int = Header(..., description="ID of the authenticated client"),
) -> int:
    """
    Identity of the calling client, set by the auth proxy in front of the API.

    Returns:
        int: Client ID
    """
    return x_client_id


async def get_current_vendor_id(
    x_vendor_id: int = Header(..., description="ID of the authenticated vendor or venue"),
) -> int:
    return x_vendor_id


async def get_orchestrator(db: AsyncSession = Depends(get_db)) -> BookingOrchestrator:
    """Booking orchestrator bound to the request's database session."""
    return BookingOrchestrator(BookingStore(db), payfast_client)
