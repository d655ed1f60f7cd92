"""Tests for payment browser navigation handling."""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from quotebook.models import BookingDeposit, PaymentStatus, QuoteRequest, QuoteStatus
from quotebook.services.booking_orchestrator import BookingOrchestrator
from quotebook.services.booking_store import BookingStore
from quotebook.services.callback_interceptor import (
    CallbackInterceptor,
    CallbackOutcome,
    PaymentSessionRegistry,
    classify,
)


class FlakyDepositStore(BookingStore):
    """Loses the first deposit write."""

    def __init__(self, db):
        super().__init__(db)
        self.failures_left = 1

    async def update_booking_deposit_status(self, deposit_id, expected_status, new_status, **fields):
        if self.failures_left:
            self.failures_left -= 1
            raise OperationalError("UPDATE booking_deposits", {}, Exception("connection lost"))
        return await super().update_booking_deposit_status(deposit_id, expected_status, new_status, **fields)


@pytest.mark.parametrize("url,expected", [
    ("https://vibeventz.app/payment/return", CallbackOutcome.SUCCESS),
    ("https://vibeventz.app/payment/return?pf_payment_id=1089250", CallbackOutcome.SUCCESS),
    ("https://vibeventz.app/payment/cancel", CallbackOutcome.CANCEL),
    ("https://vibeventz.app/payment/cancel?next=/payment/return", CallbackOutcome.CANCEL),
    ("https://vibeventz.app/payment/cancel#payment/return", CallbackOutcome.CANCEL),
    ("https://vibeventz.app/payment/return?from=payment/cancel", CallbackOutcome.SUCCESS),
    ("https://sandbox.payfast.co.za/eng/process/payment_method", CallbackOutcome.OTHER),
    ("https://sandbox.payfast.co.za/eng/process?return_url=https%3A%2F%2Fvibeventz.app%2Fpayment%2Freturn",
     CallbackOutcome.OTHER),
    ("about:blank", CallbackOutcome.OTHER),
])
def test_classify(url, expected):
    assert classify(url) == expected


@pytest.mark.asyncio
async def test_return_url_settles_once(db: AsyncSession, orchestrator: BookingOrchestrator, quoted_quote):
    """Only the first return URL is dispatched."""
    accepted = await orchestrator.accept_quote(42)
    interceptor = CallbackInterceptor(orchestrator, accepted.session)

    assert await interceptor.handle_navigation("https://sandbox.payfast.co.za/eng/process/card") == CallbackOutcome.OTHER
    assert not interceptor.finished

    assert await interceptor.handle_navigation("https://vibeventz.app/payment/return") == CallbackOutcome.SUCCESS
    assert interceptor.finished

    deposit = await db.get(BookingDeposit, accepted.deposit_id, populate_existing=True)
    quote = await db.get(QuoteRequest, 42, populate_existing=True)
    assert deposit.payment_status == PaymentStatus.PAID
    assert quote.status == QuoteStatus.BOOKED

    # A second navigation to the return URL is ignored
    calls = []

    async def record_confirm(deposit_id, gateway_payment_id=None):
        calls.append(deposit_id)

    orchestrator.confirm_payment = record_confirm
    await interceptor.handle_navigation("https://vibeventz.app/payment/return")
    await interceptor.handle_navigation("https://vibeventz.app/payment/cancel")

    assert calls == []
    assert interceptor.outcome == CallbackOutcome.SUCCESS


@pytest.mark.asyncio
async def test_cancel_url_leaves_deposit_pending(db: AsyncSession, orchestrator: BookingOrchestrator, quoted_quote):
    accepted = await orchestrator.accept_quote(42)
    interceptor = CallbackInterceptor(orchestrator, accepted.session)

    assert await interceptor.handle_navigation("https://vibeventz.app/payment/cancel") == CallbackOutcome.CANCEL

    deposit = await db.get(BookingDeposit, accepted.deposit_id, populate_existing=True)
    quote = await db.get(QuoteRequest, 42, populate_existing=True)
    assert deposit.payment_status == PaymentStatus.PENDING
    assert quote.status == QuoteStatus.ACCEPTED


@pytest.mark.asyncio
async def test_registry_tracks_finished_sessions(orchestrator: BookingOrchestrator, quoted_quote):
    accepted = await orchestrator.accept_quote(42)
    registry = PaymentSessionRegistry()

    registry.open(accepted.session)
    assert len(registry) == 1
    assert registry.get("1") == accepted.session
    assert registry.finished_outcome("1") is None

    registry.close("1", CallbackOutcome.CANCEL)
    assert len(registry) == 0
    assert registry.get("1") is None
    assert registry.finished_outcome("1") == CallbackOutcome.CANCEL

    # Reopening for a retry clears the finished marker
    registry.open(accepted.session)
    assert registry.finished_outcome("1") is None


@pytest.mark.asyncio
async def test_failed_dispatch_leaves_session_open(db: AsyncSession, payfast, quoted_quote):
    """A return URL whose deposit write fails is retried on the next navigation."""
    orchestrator = BookingOrchestrator(FlakyDepositStore(db), payfast)
    accepted = await orchestrator.accept_quote(42)
    interceptor = CallbackInterceptor(orchestrator, accepted.session)

    with pytest.raises(OperationalError):
        await interceptor.handle_navigation("https://vibeventz.app/payment/return")

    assert not interceptor.finished
    deposit = await db.get(BookingDeposit, accepted.deposit_id, populate_existing=True)
    assert deposit.payment_status == PaymentStatus.PENDING

    assert await interceptor.handle_navigation("https://vibeventz.app/payment/return") == CallbackOutcome.SUCCESS
    assert interceptor.outcome == CallbackOutcome.SUCCESS

    deposit = await db.get(BookingDeposit, accepted.deposit_id, populate_existing=True)
    quote = await db.get(QuoteRequest, 42, populate_existing=True)
    assert deposit.payment_status == PaymentStatus.PAID
    assert quote.status == QuoteStatus.BOOKED


def test_registry_forgets_oldest_finished_sessions():
    registry = PaymentSessionRegistry(max_finished=2)

    registry.close("1", CallbackOutcome.SUCCESS)
    registry.close("2", CallbackOutcome.CANCEL)
    registry.close("3", CallbackOutcome.SUCCESS)

    assert registry.finished_outcome("1") is None
    assert registry.finished_outcome("2") == CallbackOutcome.CANCEL
    assert registry.finished_outcome("3") == CallbackOutcome.SUCCESS

    # Closing again refreshes an entry's place in the window
    registry.close("2", CallbackOutcome.CANCEL)
    registry.close("4", CallbackOutcome.SUCCESS)

    assert registry.finished_outcome("2") == CallbackOutcome.CANCEL
    assert registry.finished_outcome("3") is None
