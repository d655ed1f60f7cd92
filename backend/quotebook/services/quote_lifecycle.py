"""
Quote request state machine.

Pure functions only: nothing here touches the database. Services ask
transition() for the next status and write it themselves with a
compare-and-set against the status they read.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from quotebook.core.errors import InvalidTransitionError
from quotebook.models.booking_deposit import BookingDeposit, PaymentStatus
from quotebook.models.quote_request import QuoteStatus
from quotebook.models.quote_revision import QuoteRevision, RevisionStatus


class QuoteEvent(str, Enum):
    """Actions that move a quote request between statuses."""
    SEND_REVISION = "send_revision"  # vendor
    ACCEPT = "accept"  # client
    REJECT = "reject"  # client
    APPROVE = "approve"  # client approves an amendment directly
    INITIATE_PAYMENT = "initiate_payment"
    CONFIRM_PAYMENT = "confirm_payment"  # gateway
    REQUEST_TOUR = "request_tour"  # client, venues only
    VENDOR_CONTACT = "vendor_contact"  # vendor follows up a tour request


TRANSITIONS: Dict[Tuple[QuoteStatus, QuoteEvent], QuoteStatus] = {
    (QuoteStatus.PENDING, QuoteEvent.SEND_REVISION): QuoteStatus.QUOTED,
    (QuoteStatus.QUOTED, QuoteEvent.ACCEPT): QuoteStatus.ACCEPTED,
    (QuoteStatus.QUOTED, QuoteEvent.REJECT): QuoteStatus.REJECTED,
    (QuoteStatus.QUOTED, QuoteEvent.SEND_REVISION): QuoteStatus.AMENDED,
    (QuoteStatus.AMENDED, QuoteEvent.SEND_REVISION): QuoteStatus.AMENDED,
    (QuoteStatus.AMENDED, QuoteEvent.APPROVE): QuoteStatus.FINALISED,
    (QuoteStatus.AMENDED, QuoteEvent.REJECT): QuoteStatus.REJECTED,
    # A revision after rejection opens a new negotiation chain
    (QuoteStatus.REJECTED, QuoteEvent.SEND_REVISION): QuoteStatus.QUOTED,
    (QuoteStatus.ACCEPTED, QuoteEvent.INITIATE_PAYMENT): QuoteStatus.ACCEPTED,
    (QuoteStatus.FINALISED, QuoteEvent.INITIATE_PAYMENT): QuoteStatus.FINALISED,
    (QuoteStatus.ACCEPTED, QuoteEvent.CONFIRM_PAYMENT): QuoteStatus.BOOKED,
    (QuoteStatus.FINALISED, QuoteEvent.CONFIRM_PAYMENT): QuoteStatus.BOOKED,
    (QuoteStatus.PENDING, QuoteEvent.REQUEST_TOUR): QuoteStatus.TOUR_REQUESTED,
    (QuoteStatus.TOUR_REQUESTED, QuoteEvent.VENDOR_CONTACT): QuoteStatus.PENDING,
}

TERMINAL_STATUSES = frozenset({QuoteStatus.BOOKED})

# Statuses from which a client may open (or reopen) the payment flow
PAYABLE_STATUSES = frozenset({QuoteStatus.ACCEPTED, QuoteStatus.FINALISED})


def _check_guard(
    status: QuoteStatus,
    event: QuoteEvent,
    revision: Optional[QuoteRevision],
    deposit: Optional[BookingDeposit],
    now: Optional[datetime],
) -> None:
    if event == QuoteEvent.ACCEPT:
        if revision is None or revision.status != RevisionStatus.SENT:
            raise InvalidTransitionError(
                "Quote has no sent revision to accept",
                current_status=status.value,
                event=event.value,
            )
        if revision.is_expired(now):
            raise InvalidTransitionError(
                f"Quote revision {revision.revision_number} expired at {revision.expires_at.isoformat()}",
                current_status=status.value,
                event=event.value,
            )

    elif event == QuoteEvent.APPROVE:
        if revision is None or revision.status != RevisionStatus.SENT:
            raise InvalidTransitionError(
                "Amendment has no sent revision to approve",
                current_status=status.value,
                event=event.value,
            )

    elif event == QuoteEvent.INITIATE_PAYMENT:
        if deposit is None or deposit.payment_status != PaymentStatus.PENDING:
            raise InvalidTransitionError(
                "Payment requires a pending deposit",
                current_status=status.value,
                event=event.value,
            )

    elif event == QuoteEvent.CONFIRM_PAYMENT:
        if deposit is None:
            raise InvalidTransitionError(
                "No deposit matches this payment",
                current_status=status.value,
                event=event.value,
            )


def transition(
    status: QuoteStatus,
    event: QuoteEvent,
    *,
    revision: Optional[QuoteRevision] = None,
    deposit: Optional[BookingDeposit] = None,
    now: Optional[datetime] = None,
) -> QuoteStatus:
    """
    Compute the status that follows `event` in `status`.

    Args:
        status: Current quote request status
        event: Event being applied
        revision: Revision the event acts on (required for ACCEPT and APPROVE)
        deposit: Deposit the event acts on (required for payment events)
        now: Clock used for revision expiry, defaults to utcnow

    Returns:
        The next status

    Raises:
        InvalidTransitionError: If the event is not allowed in `status` or its guard fails
    """
    status = QuoteStatus(status)
    event = QuoteEvent(event)

    next_status = TRANSITIONS.get((status, event))
    if next_status is None:
        raise InvalidTransitionError(
            f"Cannot {event.value.replace('_', ' ')} a quote with status '{status.value}'",
            current_status=status.value,
            event=event.value,
        )

    _check_guard(status, event, revision, deposit, now)
    return next_status


def can_transition(status: QuoteStatus, event: QuoteEvent) -> bool:
    """Whether `event` is defined for `status`, ignoring guards."""
    return (QuoteStatus(status), QuoteEvent(event)) in TRANSITIONS


def allowed_events(status: QuoteStatus) -> list[QuoteEvent]:
    """Events defined for `status`, in declaration order."""
    status = QuoteStatus(status)
    return [event for (from_status, event) in TRANSITIONS if from_status == status]
