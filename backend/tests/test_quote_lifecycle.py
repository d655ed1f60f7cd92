"""Tests for the quote request state machine."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from quotebook.core.errors import InvalidTransitionError
from quotebook.models import BookingDeposit, PaymentStatus, QuoteRevision, QuoteStatus, RevisionStatus
from quotebook.services.quote_lifecycle import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    QuoteEvent,
    allowed_events,
    can_transition,
    transition,
)


NOW = datetime(2026, 10, 18, 12, 0, 0)


def _revision(status=RevisionStatus.SENT, sent_at=NOW, validity_days=7) -> QuoteRevision:
    return QuoteRevision(
        quote_request_id=42,
        vendor_id=7,
        revision_number=1,
        amount=Decimal("1500.00"),
        validity_days=validity_days,
        status=status,
        sent_at=sent_at,
    )


def _deposit(payment_status=PaymentStatus.PENDING) -> BookingDeposit:
    return BookingDeposit(
        quote_request_id=42,
        client_id=11,
        vendor_id=7,
        amount=Decimal("1500.00"),
        payment_status=payment_status,
    )


def _guards_for(event: QuoteEvent) -> dict:
    if event in (QuoteEvent.ACCEPT, QuoteEvent.APPROVE):
        return {"revision": _revision(), "now": NOW}
    if event in (QuoteEvent.INITIATE_PAYMENT, QuoteEvent.CONFIRM_PAYMENT):
        return {"deposit": _deposit()}
    return {}


@pytest.mark.parametrize("status", list(QuoteStatus))
@pytest.mark.parametrize("event", list(QuoteEvent))
def test_every_status_event_pair_is_decided(status, event):
    """Each pair either yields the tabled status or raises InvalidTransitionError."""
    expected = TRANSITIONS.get((status, event))

    if expected is None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(status, event, **_guards_for(event))
        assert exc_info.value.current_status == status.value
        assert exc_info.value.event == event.value
    else:
        assert transition(status, event, **_guards_for(event)) == expected


def test_booked_is_terminal():
    assert TERMINAL_STATUSES == {QuoteStatus.BOOKED}
    assert allowed_events(QuoteStatus.BOOKED) == []
    for status in QuoteStatus:
        if status not in TERMINAL_STATUSES:
            assert allowed_events(status), f"{status} has no way out"


def test_negotiation_path():
    status = transition(QuoteStatus.PENDING, QuoteEvent.SEND_REVISION)
    assert status == QuoteStatus.QUOTED

    status = transition(status, QuoteEvent.SEND_REVISION)
    assert status == QuoteStatus.AMENDED

    status = transition(status, QuoteEvent.SEND_REVISION)
    assert status == QuoteStatus.AMENDED

    status = transition(status, QuoteEvent.APPROVE, revision=_revision())
    assert status == QuoteStatus.FINALISED

    status = transition(status, QuoteEvent.CONFIRM_PAYMENT, deposit=_deposit(PaymentStatus.PAID))
    assert status == QuoteStatus.BOOKED


def test_rejected_quote_can_be_requoted():
    assert transition(QuoteStatus.REJECTED, QuoteEvent.SEND_REVISION) == QuoteStatus.QUOTED


def test_tour_request_returns_to_pending():
    status = transition(QuoteStatus.PENDING, QuoteEvent.REQUEST_TOUR)
    assert status == QuoteStatus.TOUR_REQUESTED
    assert transition(status, QuoteEvent.VENDOR_CONTACT) == QuoteStatus.PENDING
    assert not can_transition(QuoteStatus.TOUR_REQUESTED, QuoteEvent.APPROVE)


def test_accept_requires_sent_revision():
    with pytest.raises(InvalidTransitionError):
        transition(QuoteStatus.QUOTED, QuoteEvent.ACCEPT)

    with pytest.raises(InvalidTransitionError):
        transition(QuoteStatus.QUOTED, QuoteEvent.ACCEPT, revision=_revision(RevisionStatus.SUPERSEDED))


def test_approve_requires_sent_revision():
    with pytest.raises(InvalidTransitionError):
        transition(QuoteStatus.AMENDED, QuoteEvent.APPROVE)

    with pytest.raises(InvalidTransitionError) as exc_info:
        transition(QuoteStatus.AMENDED, QuoteEvent.APPROVE, revision=_revision(RevisionStatus.DRAFT))

    assert exc_info.value.current_status == "amended"


def test_accept_rejects_expired_revision():
    revision = _revision(sent_at=NOW - timedelta(days=8), validity_days=7)

    with pytest.raises(InvalidTransitionError) as exc_info:
        transition(QuoteStatus.QUOTED, QuoteEvent.ACCEPT, revision=revision, now=NOW)

    assert "expired" in exc_info.value.message


def test_accept_on_last_valid_moment():
    revision = _revision(sent_at=NOW - timedelta(days=7), validity_days=7)
    assert transition(QuoteStatus.QUOTED, QuoteEvent.ACCEPT, revision=revision, now=NOW) == QuoteStatus.ACCEPTED


def test_amended_quote_cannot_be_accepted():
    """An amendment is approved, not accepted."""
    with pytest.raises(InvalidTransitionError):
        transition(QuoteStatus.AMENDED, QuoteEvent.ACCEPT, revision=_revision(), now=NOW)


def test_initiate_payment_requires_pending_deposit():
    assert transition(
        QuoteStatus.ACCEPTED, QuoteEvent.INITIATE_PAYMENT, deposit=_deposit()
    ) == QuoteStatus.ACCEPTED

    with pytest.raises(InvalidTransitionError):
        transition(QuoteStatus.ACCEPTED, QuoteEvent.INITIATE_PAYMENT)

    with pytest.raises(InvalidTransitionError):
        transition(QuoteStatus.ACCEPTED, QuoteEvent.INITIATE_PAYMENT, deposit=_deposit(PaymentStatus.PAID))


def test_confirm_payment_requires_deposit():
    with pytest.raises(InvalidTransitionError):
        transition(QuoteStatus.ACCEPTED, QuoteEvent.CONFIRM_PAYMENT)


def test_transition_accepts_raw_values():
    assert transition("pending", "send_revision") == QuoteStatus.QUOTED
