"""Booking deposit endpoints: settlement, cancellation and reconciliation."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quotebook.api.deps import get_current_client_id, get_db, get_orchestrator
from quotebook.core.errors import NotFoundError
from quotebook.schemas.booking import DepositResponse, ReconciliationResponse, SettlementResponse
from quotebook.services import quote_service
from quotebook.services.booking_orchestrator import BookingOrchestrator, Settlement

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _settlement_response(settlement: Settlement) -> SettlementResponse:
    return SettlementResponse(
        deposit_id=settlement.deposit.id,
        quote_id=settlement.quote.id,
        payment_status=settlement.deposit.payment_status,
        quote_status=settlement.quote.status,
        already_settled=settlement.already_settled,
    )


@router.get("/vendors/{vendor_id}", response_model=list[DepositResponse])
async def list_vendor_bookings(vendor_id: int, db: AsyncSession = Depends(get_db)):
    """A vendor's deposits, newest first."""
    return await quote_service.list_vendor_bookings(db, vendor_id)


@router.post("/reconcile", response_model=ReconciliationResponse)
async def reconcile(orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    """
    Book every quote whose deposit is paid but whose status write was lost.

    Safe to run at any time; only the quote status is written.
    """
    report = await orchestrator.reconcile()
    return ReconciliationResponse(
        settled=[_settlement_response(s) for s in report.settled],
        failed_deposit_ids=report.failed_deposit_ids,
    )


@router.get("/{deposit_id}", response_model=DepositResponse)
async def get_deposit(deposit_id: int, orchestrator: BookingOrchestrator = Depends(get_orchestrator)):
    deposit = await orchestrator.store.get_booking_deposit(deposit_id)
    if deposit is None:
        raise NotFoundError(f"Booking deposit {deposit_id} not found")
    return deposit


@router.post("/{deposit_id}/confirm", response_model=SettlementResponse)
async def confirm_payment(
    deposit_id: int,
    client_id: int = Depends(get_current_client_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Mark the client's deposit paid and the quote booked. Repeating the call changes nothing."""
    await quote_service.get_client_deposit(orchestrator.store.db, deposit_id, client_id)
    settlement = await orchestrator.confirm_payment(deposit_id)
    return _settlement_response(settlement)


@router.post("/{deposit_id}/cancel", response_model=DepositResponse)
async def cancel_payment(
    deposit_id: int,
    client_id: int = Depends(get_current_client_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Record an abandoned checkout. The deposit stays pending for a retry."""
    await quote_service.get_client_deposit(orchestrator.store.db, deposit_id, client_id)
    return await orchestrator.cancel_payment(deposit_id)
