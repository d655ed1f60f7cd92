"""
Quote request endpoints: client requests, vendor revisions, client responses
and quote acceptance.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from quotebook.api.deps import get_db, get_current_client_id, get_current_vendor_id, get_orchestrator
from quotebook.schemas.booking import AcceptQuoteResponse
from quotebook.schemas.quote import (
    QuoteApprove,
    QuoteReject,
    QuoteRequestCreate,
    QuoteRequestResponse,
    RevisionDraft,
    RevisionResponse,
    RevisionSend,
)
from quotebook.services import quote_service
from quotebook.services.booking_orchestrator import BookingOrchestrator
from quotebook.services.callback_interceptor import payment_sessions

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post("", response_model=QuoteRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_quote_request(
    request: QuoteRequestCreate,
    db: AsyncSession = Depends(get_db),
    client_id: int = Depends(get_current_client_id),
):
    """
    Ask a vendor or venue for pricing.

    Example:
        ```json
        {
          "vendor_id": 7,
          "client_name": "Thandi Nkosi",
          "client_email": "thandi@example.com",
          "event_type": "wedding",
          "event_date": "2026-12-12",
          "details": "120 guests, outdoor ceremony",
          "budget": "R40k - R60k"
        }
        ```
    """
    return await quote_service.create_quote_request(
        db,
        client_id=client_id,
        **request.model_dump(),
    )


@router.get("/{quote_id}", response_model=QuoteRequestResponse)
async def get_quote_request(quote_id: int, db: AsyncSession = Depends(get_db)):
    return await quote_service.get_quote_request(db, quote_id)


@router.get("/{quote_id}/revisions", response_model=list[RevisionResponse])
async def list_revisions(quote_id: int, db: AsyncSession = Depends(get_db)):
    """All revisions of a quote request, oldest first."""
    return await quote_service.list_revisions(db, quote_id)


@router.put("/{quote_id}/revisions/draft", response_model=RevisionResponse)
async def save_draft_revision(
    quote_id: int,
    request: RevisionDraft,
    db: AsyncSession = Depends(get_db),
    vendor_id: int = Depends(get_current_vendor_id),
):
    """Create or overwrite the vendor's draft revision."""
    return await quote_service.save_draft_revision(
        db,
        quote_id=quote_id,
        vendor_id=vendor_id,
        amount=request.amount,
        description=request.description,
        terms=request.terms,
        validity_days=request.validity_days,
    )


@router.post("/{quote_id}/revisions/send", response_model=RevisionResponse)
async def send_revision(
    quote_id: int,
    request: RevisionSend,
    db: AsyncSession = Depends(get_db),
    vendor_id: int = Depends(get_current_vendor_id),
):
    """
    Send a revision to the client.

    The first revision moves the quote to "quoted"; later ones supersede the
    previous revision and move it to "amended".
    """
    return await quote_service.send_revision(
        db,
        quote_id=quote_id,
        vendor_id=vendor_id,
        amount=request.amount,
        description=request.description,
        terms=request.terms,
        validity_days=request.validity_days,
    )


@router.post("/{quote_id}/reject", response_model=QuoteRequestResponse)
async def reject_quote(
    quote_id: int,
    request: QuoteReject,
    db: AsyncSession = Depends(get_db),
    client_id: int = Depends(get_current_client_id),
):
    return await quote_service.reject_quote(db, quote_id, client_id, request.notes)


@router.post("/{quote_id}/approve", response_model=QuoteRequestResponse)
async def approve_amendment(
    quote_id: int,
    request: QuoteApprove,
    db: AsyncSession = Depends(get_db),
    client_id: int = Depends(get_current_client_id),
):
    """Approve an amended quote directly (amended -> finalised)."""
    return await quote_service.approve_amendment(db, quote_id, client_id, request.notes)


@router.post("/{quote_id}/tour", response_model=QuoteRequestResponse)
async def request_tour(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    client_id: int = Depends(get_current_client_id),
):
    return await quote_service.request_tour(db, quote_id, client_id)


@router.post("/{quote_id}/vendor-contact", response_model=QuoteRequestResponse)
async def record_vendor_contact(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    vendor_id: int = Depends(get_current_vendor_id),
):
    return await quote_service.record_vendor_contact(db, quote_id, vendor_id)


@router.post("/{quote_id}/accept", response_model=AcceptQuoteResponse)
async def accept_quote(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    client_id: int = Depends(get_current_client_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """
    Accept the current quote and get a checkout URL for its deposit.

    Calling this again for an accepted quote (e.g. after cancelling checkout)
    returns a fresh URL for the same pending deposit.
    """
    await quote_service.get_client_quote(db, quote_id, client_id)
    accepted = await orchestrator.accept_quote(quote_id)
    payment_sessions.open(accepted.session)

    return AcceptQuoteResponse(
        quote_id=quote_id,
        deposit_id=accepted.deposit_id,
        redirect_url=accepted.redirect_url,
        m_payment_id=accepted.session.m_payment_id,
    )
