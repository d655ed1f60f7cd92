"""Tests for PayFast ITN verification and handling."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from quotebook.core import signature
from quotebook.core.errors import InvalidAmountError, InvalidSignatureError, NotFoundError
from quotebook.models import BookingDeposit, PaymentStatus, QuoteRequest, QuoteStatus
from quotebook.services.booking_orchestrator import BookingOrchestrator
from quotebook.services.payment_notification_service import NotificationResult, PaymentNotificationService


PASSPHRASE = "jt7NOE43FZPn"


@pytest.fixture
def itn_service() -> PaymentNotificationService:
    return PaymentNotificationService(passphrase=PASSPHRASE, merchant_id="10000100")


def _notification(m_payment_id="1", payment_status="COMPLETE", passphrase=PASSPHRASE, **extra) -> dict:
    params = {
        "m_payment_id": m_payment_id,
        "pf_payment_id": "1089250",
        "payment_status": payment_status,
        "item_name": "Booking deposit for quote #42",
        "amount_gross": "1500.00",
        "amount_fee": "-34.50",
        "amount_net": "1465.50",
        "name_first": "Thandi",
        "name_last": "Nkosi",
        "email_address": "thandi@example.com",
        "merchant_id": "10000100",
    }
    params.update(extra)
    params["signature"] = signature.sign(params, passphrase)
    return params


@pytest.mark.asyncio
async def test_complete_notification_settles(
    db: AsyncSession, orchestrator: BookingOrchestrator, itn_service, quoted_quote
):
    accepted = await orchestrator.accept_quote(42)

    result = await itn_service.handle_notification(orchestrator, _notification(str(accepted.deposit_id)))

    assert result == NotificationResult.SETTLED
    deposit = await db.get(BookingDeposit, accepted.deposit_id, populate_existing=True)
    assert deposit.payment_status == PaymentStatus.PAID
    assert deposit.gateway_payment_id == "1089250"
    assert (await db.get(QuoteRequest, 42, populate_existing=True)).status == QuoteStatus.BOOKED

    # Gateways retry notifications; a repeat changes nothing
    assert await itn_service.handle_notification(
        orchestrator, _notification(str(accepted.deposit_id))
    ) == NotificationResult.SETTLED


@pytest.mark.asyncio
async def test_bad_signature_rejected(db: AsyncSession, orchestrator: BookingOrchestrator, itn_service, quoted_quote):
    accepted = await orchestrator.accept_quote(42)
    params = _notification(str(accepted.deposit_id), passphrase="wrong")

    with pytest.raises(InvalidSignatureError):
        await itn_service.handle_notification(orchestrator, params)

    deposit = await db.get(BookingDeposit, accepted.deposit_id, populate_existing=True)
    assert deposit.payment_status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_tampered_amount_rejected(orchestrator: BookingOrchestrator, itn_service, quoted_quote):
    accepted = await orchestrator.accept_quote(42)
    params = _notification(str(accepted.deposit_id))
    params["amount_gross"] = "1.00"

    with pytest.raises(InvalidSignatureError):
        await itn_service.handle_notification(orchestrator, params)


@pytest.mark.asyncio
async def test_amount_mismatch_rejected(db: AsyncSession, orchestrator: BookingOrchestrator, itn_service, quoted_quote):
    """A correctly signed notification for the wrong amount does not settle."""
    accepted = await orchestrator.accept_quote(42)
    params = _notification(str(accepted.deposit_id), amount_gross="15.00")

    with pytest.raises(InvalidAmountError):
        await itn_service.handle_notification(orchestrator, params)

    deposit = await db.get(BookingDeposit, accepted.deposit_id, populate_existing=True)
    assert deposit.payment_status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_foreign_merchant_rejected(orchestrator: BookingOrchestrator, itn_service, quoted_quote):
    accepted = await orchestrator.accept_quote(42)

    with pytest.raises(InvalidSignatureError):
        await itn_service.handle_notification(
            orchestrator, _notification(str(accepted.deposit_id), merchant_id="99999999")
        )


@pytest.mark.asyncio
async def test_missing_fields_rejected(orchestrator: BookingOrchestrator, itn_service):
    with pytest.raises(InvalidSignatureError):
        await itn_service.handle_notification(orchestrator, {"payment_status": "COMPLETE"})


@pytest.mark.asyncio
async def test_unknown_payment_id(orchestrator: BookingOrchestrator, itn_service):
    with pytest.raises(NotFoundError):
        await itn_service.handle_notification(orchestrator, _notification("404"))

    with pytest.raises(NotFoundError):
        await itn_service.handle_notification(orchestrator, _notification("abc"))


@pytest.mark.asyncio
async def test_failed_notification_marks_deposit_failed(
    db: AsyncSession, orchestrator: BookingOrchestrator, itn_service, quoted_quote
):
    accepted = await orchestrator.accept_quote(42)

    result = await itn_service.handle_notification(
        orchestrator, _notification(str(accepted.deposit_id), payment_status="FAILED")
    )

    assert result == NotificationResult.FAILED
    deposit = await db.get(BookingDeposit, accepted.deposit_id, populate_existing=True)
    assert deposit.payment_status == PaymentStatus.FAILED
    assert (await db.get(QuoteRequest, 42, populate_existing=True)).status == QuoteStatus.ACCEPTED


@pytest.mark.asyncio
async def test_cancelled_and_unknown_statuses(
    db: AsyncSession, orchestrator: BookingOrchestrator, itn_service, quoted_quote
):
    accepted = await orchestrator.accept_quote(42)
    m_payment_id = str(accepted.deposit_id)

    assert await itn_service.handle_notification(
        orchestrator, _notification(m_payment_id, payment_status="CANCELLED")
    ) == NotificationResult.CANCELLED
    assert await itn_service.handle_notification(
        orchestrator, _notification(m_payment_id, payment_status="PENDING")
    ) == NotificationResult.IGNORED

    deposit = await db.get(BookingDeposit, accepted.deposit_id, populate_existing=True)
    assert deposit.payment_status == PaymentStatus.PENDING
