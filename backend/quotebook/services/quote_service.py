"""Quote request negotiation between clients and vendors."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quotebook.config import settings
from quotebook.core.errors import (
    InvalidAmountError,
    InvalidTransitionError,
    NotAuthorizedError,
    NotFoundError,
)
from quotebook.core.events import event_bus, LifecycleEvent
from quotebook.models.booking_deposit import BookingDeposit
from quotebook.models.quote_request import QuoteRequest, QuoteStatus
from quotebook.models.quote_revision import QuoteRevision, RevisionStatus
from quotebook.services.booking_store import BookingStore
from quotebook.services.payment_gateway import format_amount
from quotebook.services.quote_lifecycle import QuoteEvent, can_transition, transition

logger = logging.getLogger(__name__)


async def create_quote_request(
    db: AsyncSession,
    client_id: int,
    vendor_id: int,
    client_name: Optional[str] = None,
    client_email: Optional[str] = None,
    event_type: Optional[str] = None,
    event_date: Optional[date] = None,
    details: Optional[str] = None,
    budget: Optional[str] = None,
) -> QuoteRequest:
    """
    Create a pending quote request from a client to a vendor.

    Returns:
        Created QuoteRequest
    """
    quote = QuoteRequest(
        client_id=client_id,
        vendor_id=vendor_id,
        client_name=client_name,
        client_email=client_email,
        event_type=event_type,
        event_date=event_date,
        details=details,
        budget=budget,
        status=QuoteStatus.PENDING,
    )
    db.add(quote)
    await db.commit()
    await db.refresh(quote)

    logger.info(f"Quote request {quote.id} created by client {client_id} for vendor {vendor_id}")
    await event_bus.publish(LifecycleEvent.QUOTE_REQUESTED, {
        "quote_id": quote.id,
        "vendor_id": vendor_id,
        "event_type": event_type,
    })
    return quote


async def get_quote_request(db: AsyncSession, quote_id: int) -> QuoteRequest:
    """
    Raises:
        NotFoundError: If the quote request does not exist
    """
    quote = await BookingStore(db).get_quote_request(quote_id)
    if quote is None:
        raise NotFoundError(f"Quote request {quote_id} not found")
    return quote


async def get_client_quote(db: AsyncSession, quote_id: int, client_id: int) -> QuoteRequest:
    quote = await get_quote_request(db, quote_id)
    if quote.client_id != client_id:
        raise NotAuthorizedError("Not authorized - you did not request this quote")
    return quote


async def get_vendor_quote(db: AsyncSession, quote_id: int, vendor_id: int) -> QuoteRequest:
    quote = await get_quote_request(db, quote_id)
    if quote.vendor_id != vendor_id:
        raise NotAuthorizedError("Not authorized - this quote was requested from another vendor")
    return quote


async def get_client_deposit(db: AsyncSession, deposit_id: int, client_id: int) -> BookingDeposit:
    """
    Raises:
        NotFoundError: If the deposit does not exist
        NotAuthorizedError: If the deposit belongs to another client
    """
    deposit = await BookingStore(db).get_booking_deposit(deposit_id)
    if deposit is None:
        raise NotFoundError(f"Booking deposit {deposit_id} not found")
    if deposit.client_id != client_id:
        raise NotAuthorizedError("Not authorized - this deposit belongs to another client")
    return deposit


async def _apply(
    db: AsyncSession,
    quote: QuoteRequest,
    event: QuoteEvent,
    revision: Optional[QuoteRevision] = None,
    **fields,
) -> QuoteRequest:
    """Run one lifecycle transition as a compare-and-set status write."""
    next_status = transition(quote.status, event, revision=revision)
    store = BookingStore(db)

    updated = await store.update_quote_request_status(quote.id, quote.status, next_status, **fields)
    if not updated:
        current = await store.get_quote_request(quote.id)
        raise InvalidTransitionError(
            f"Quote {quote.id} changed to '{current.status.value}' before it could be updated",
            current_status=current.status.value,
            event=event.value,
        )
    return await get_quote_request(db, quote.id)


def _check_revisable(quote: QuoteRequest) -> None:
    if not can_transition(quote.status, QuoteEvent.SEND_REVISION):
        raise InvalidTransitionError(
            f"Cannot revise a quote with status '{quote.status.value}'",
            current_status=quote.status.value,
            event=QuoteEvent.SEND_REVISION.value,
        )


async def save_draft_revision(
    db: AsyncSession,
    quote_id: int,
    vendor_id: int,
    amount: Decimal,
    description: Optional[str] = None,
    terms: Optional[str] = None,
    validity_days: Optional[int] = None,
) -> QuoteRevision:
    """
    Create or update the vendor's draft revision.

    A quote request has at most one draft; saving again overwrites it.

    Raises:
        InvalidAmountError: amount <= 0
        InvalidTransitionError: The quote can no longer be revised
    """
    quote = await get_vendor_quote(db, quote_id, vendor_id)
    _check_revisable(quote)
    amount = Decimal(format_amount(amount))

    store = BookingStore(db)
    draft = await store.get_draft_revision(quote_id)
    if draft is None:
        draft = QuoteRevision(
            quote_request_id=quote_id,
            vendor_id=vendor_id,
            revision_number=await store.next_revision_number(quote_id),
            status=RevisionStatus.DRAFT,
        )
        db.add(draft)

    draft.amount = amount
    draft.description = description
    draft.terms = terms
    draft.validity_days = validity_days or settings.QUOTE_VALIDITY_DAYS

    await db.commit()
    await db.refresh(draft)

    logger.info(f"Draft revision {draft.revision_number} saved for quote {quote_id}: {amount}")
    return draft


async def send_revision(
    db: AsyncSession,
    quote_id: int,
    vendor_id: int,
    amount: Optional[Decimal] = None,
    description: Optional[str] = None,
    terms: Optional[str] = None,
    validity_days: Optional[int] = None,
) -> QuoteRevision:
    """
    Send a revision to the client.

    Sends the current draft, after first saving `amount` and the other fields
    into it when given. The quote status is written first as a
    compare-and-set, so a client accepting the previous revision at the same
    moment makes exactly one of the two actions fail. The previous sent
    revision is superseded before the new one is marked sent.

    Raises:
        InvalidAmountError: No amount given and no draft to send
        InvalidTransitionError: Quote cannot be revised, or changed concurrently
    """
    quote = await get_vendor_quote(db, quote_id, vendor_id)
    _check_revisable(quote)

    store = BookingStore(db)
    if amount is not None:
        draft = await save_draft_revision(db, quote_id, vendor_id, amount, description, terms, validity_days)
    else:
        draft = await store.get_draft_revision(quote_id)
        if draft is None:
            raise InvalidAmountError("An amount is required when there is no draft to send")

    quote = await _apply(db, quote, QuoteEvent.SEND_REVISION, quote_amount=draft.amount)

    previous = await store.get_latest_sent_revision(quote_id)
    if previous is not None and previous.id != draft.id:
        superseded = await store.update_revision_status(
            previous.id, RevisionStatus.SENT, RevisionStatus.SUPERSEDED
        )
        if superseded:
            logger.info(f"Revision {previous.revision_number} of quote {quote_id} superseded")

    sent = await store.update_revision_status(
        draft.id, RevisionStatus.DRAFT, RevisionStatus.SENT, sent_at=datetime.utcnow()
    )
    if not sent:
        raise InvalidTransitionError(
            f"Revision {draft.revision_number} of quote {quote_id} is no longer a draft",
            current_status=quote.status.value,
            event=QuoteEvent.SEND_REVISION.value,
        )

    await db.refresh(draft)
    logger.info(
        f"Revision {draft.revision_number} sent for quote {quote_id}: {draft.amount} "
        f"(quote now {quote.status.value})"
    )
    await event_bus.publish(LifecycleEvent.REVISION_SENT, {
        "quote_id": quote_id,
        "revision_id": draft.id,
        "revision_number": draft.revision_number,
        "amount": str(draft.amount),
    })
    return draft


async def reject_quote(db: AsyncSession, quote_id: int, client_id: int, notes: str) -> QuoteRequest:
    """
    Reject the current quote. Feedback is required so the vendor can revise.

    Raises:
        InvalidTransitionError: Quote is not quoted or amended
    """
    quote = await get_client_quote(db, quote_id, client_id)
    quote = await _apply(
        db,
        quote,
        QuoteEvent.REJECT,
        quote_amount=None,
        client_notes=notes.strip(),
        responded_at=datetime.utcnow(),
    )

    logger.info(f"Quote {quote_id} rejected by client {client_id}")
    await event_bus.publish(LifecycleEvent.QUOTE_REJECTED, {"quote_id": quote_id, "notes": quote.client_notes})
    return quote


async def approve_amendment(
    db: AsyncSession,
    quote_id: int,
    client_id: int,
    notes: Optional[str] = None,
) -> QuoteRequest:
    """
    Approve an amended quote directly, finalising it without a re-quote.

    The quote is finalised at the amount of its sent revision, so an
    amendment whose send did not complete cannot be approved.

    Raises:
        InvalidTransitionError: Quote is not amended, or has no sent revision
    """
    quote = await get_client_quote(db, quote_id, client_id)
    revision = await BookingStore(db).get_latest_sent_revision(quote_id)
    quote = await _apply(
        db,
        quote,
        QuoteEvent.APPROVE,
        revision=revision,
        quote_amount=revision.amount if revision is not None else None,
        client_notes=notes.strip() if notes else None,
        responded_at=datetime.utcnow(),
    )

    logger.info(f"Amended quote {quote_id} finalised by client {client_id}")
    await event_bus.publish(LifecycleEvent.QUOTE_FINALISED, {
        "quote_id": quote_id,
        "amount": str(quote.quote_amount) if quote.quote_amount is not None else None,
    })
    return quote


async def request_tour(db: AsyncSession, quote_id: int, client_id: int) -> QuoteRequest:
    quote = await get_client_quote(db, quote_id, client_id)
    quote = await _apply(db, quote, QuoteEvent.REQUEST_TOUR)
    await event_bus.publish(LifecycleEvent.TOUR_REQUESTED, {"quote_id": quote_id, "vendor_id": quote.vendor_id})
    return quote


async def record_vendor_contact(db: AsyncSession, quote_id: int, vendor_id: int) -> QuoteRequest:
    """Return a tour request to pending once the vendor has been in touch."""
    quote = await get_vendor_quote(db, quote_id, vendor_id)
    return await _apply(db, quote, QuoteEvent.VENDOR_CONTACT)


async def list_revisions(db: AsyncSession, quote_id: int) -> list[QuoteRevision]:
    await get_quote_request(db, quote_id)
    return await BookingStore(db).list_revisions(quote_id)


async def list_vendor_bookings(db: AsyncSession, vendor_id: int) -> list[BookingDeposit]:
    """Deposits across all of a vendor's quotes, newest first."""
    return await BookingStore(db).list_vendor_deposits(vendor_id)
