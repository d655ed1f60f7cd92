"""PayFast Instant Transaction Notification (ITN) handling."""

import logging
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping

from quotebook.config import settings
from quotebook.core import signature
from quotebook.core.errors import InvalidSignatureError, InvalidAmountError, NotFoundError
from quotebook.services.booking_orchestrator import BookingOrchestrator

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("payment_status", "m_payment_id", "signature")


class NotificationResult(str, Enum):
    SETTLED = "settled"
    FAILED = "failed"
    CANCELLED = "cancelled"
    IGNORED = "ignored"


class PaymentNotificationService:
    """Verifies gateway notifications and routes them to the orchestrator."""

    def __init__(self, passphrase: str | None = None, merchant_id: str | None = None):
        self.passphrase = passphrase if passphrase is not None else settings.PAYFAST_PASSPHRASE
        self.merchant_id = merchant_id if merchant_id is not None else settings.PAYFAST_MERCHANT_ID

    def verify(self, params: Mapping[str, str]) -> None:
        """
        Check required fields, signature and merchant.

        Raises:
            InvalidSignatureError: Missing fields, bad signature or foreign merchant
        """
        missing = [name for name in REQUIRED_FIELDS if not params.get(name)]
        if missing:
            raise InvalidSignatureError(f"Notification missing fields: {', '.join(missing)}")

        if not signature.verify(params, params["signature"], self.passphrase or None):
            logger.error(f"PayFast ITN signature mismatch for m_payment_id={params['m_payment_id']}")
            raise InvalidSignatureError("Notification signature does not match")

        merchant_id = params.get("merchant_id")
        if merchant_id and merchant_id != self.merchant_id:
            logger.error(f"PayFast ITN for foreign merchant {merchant_id}")
            raise InvalidSignatureError("Notification is for a different merchant")

    async def handle_notification(
        self,
        orchestrator: BookingOrchestrator,
        params: Mapping[str, str],
    ) -> NotificationResult:
        """
        Apply a verified notification.

        COMPLETE settles the deposit, FAILED marks it failed, CANCELLED leaves
        it pending. Other statuses are acknowledged without changes.

        Raises:
            InvalidSignatureError: Verification failed
            NotFoundError: m_payment_id does not match a deposit
            InvalidAmountError: amount_gross differs from the deposit amount
            SettlementInconsistencyError: Deposit paid but quote not booked
        """
        self.verify(params)

        m_payment_id = params["m_payment_id"]
        if not m_payment_id.isdigit():
            raise NotFoundError(f"No deposit for m_payment_id={m_payment_id}")
        deposit_id = int(m_payment_id)

        payment_status = params["payment_status"].upper()
        logger.info(f"PayFast ITN for deposit {deposit_id}: {payment_status}")

        if payment_status == "COMPLETE":
            deposit = await orchestrator.store.get_booking_deposit(deposit_id)
            if deposit is None:
                raise NotFoundError(f"No deposit for m_payment_id={m_payment_id}")
            self._check_amount(params.get("amount_gross"), deposit.amount, deposit_id)
            await orchestrator.confirm_payment(deposit_id, gateway_payment_id=params.get("pf_payment_id"))
            return NotificationResult.SETTLED

        if payment_status == "FAILED":
            await orchestrator.fail_payment(deposit_id, reason="Gateway reported payment failure")
            return NotificationResult.FAILED

        if payment_status == "CANCELLED":
            await orchestrator.cancel_payment(deposit_id)
            return NotificationResult.CANCELLED

        logger.info(f"Ignoring PayFast ITN status {payment_status} for deposit {deposit_id}")
        return NotificationResult.IGNORED

    def _check_amount(self, amount_gross: str | None, expected: Decimal, deposit_id: int) -> None:
        if amount_gross is None:
            return
        try:
            received = Decimal(amount_gross)
        except InvalidOperation:
            raise InvalidAmountError(f"Notification amount {amount_gross!r} is not a number")
        if received != expected:
            logger.error(f"PayFast ITN amount {received} does not match deposit {deposit_id} amount {expected}")
            raise InvalidAmountError(f"Notification amount {received} does not match deposit amount {expected}")


# Singleton
payment_notification_service = PaymentNotificationService()
