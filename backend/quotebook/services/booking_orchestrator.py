"""
Quote acceptance, deposit creation and payment settlement.

This is the only place a quote status transition is chained with deposit
writes and gateway calls. Settlement is two independent writes with a fixed
order: the deposit is marked paid first, then the quote is booked. A failure
between them leaves a paid deposit on an unbooked quote, which
complete_settlement() and reconcile() repair without touching the deposit.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from quotebook.core.errors import (
    InvalidPayerError,
    InvalidTransitionError,
    NotFoundError,
    SettlementInconsistencyError,
)
from quotebook.core.events import event_bus, LifecycleEvent
from quotebook.models.booking_deposit import BookingDeposit, PaymentStatus
from quotebook.models.quote_request import QuoteRequest, QuoteStatus
from quotebook.services.booking_store import BookingStore
from quotebook.services.payment_gateway import PayFastClient, PaymentSession, format_amount, payfast_client
from quotebook.services.quote_lifecycle import PAYABLE_STATUSES, QuoteEvent, transition

logger = logging.getLogger(__name__)


@dataclass
class AcceptedBooking:
    """What the client needs to open the payment surface."""
    redirect_url: str
    deposit_id: int
    session: PaymentSession


@dataclass
class Settlement:
    deposit: BookingDeposit
    quote: QuoteRequest
    already_settled: bool = False


@dataclass
class ReconciliationReport:
    settled: list[Settlement] = field(default_factory=list)
    failed_deposit_ids: list[int] = field(default_factory=list)


def _split_name(full_name: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    if not full_name or not full_name.strip():
        return None, None
    first, _, last = full_name.strip().partition(" ")
    return first, (last.strip() or None)


class BookingOrchestrator:
    """Coordinates QuoteLifecycle, BookingStore and the payment gateway."""

    def __init__(self, store: BookingStore, gateway: PayFastClient | None = None):
        self.store = store
        self.gateway = gateway or payfast_client

    async def _get_quote(self, quote_id: int) -> QuoteRequest:
        quote = await self.store.get_quote_request(quote_id)
        if quote is None:
            raise NotFoundError(f"Quote request {quote_id} not found")
        return quote

    async def _get_deposit(self, deposit_id: int) -> BookingDeposit:
        deposit = await self.store.get_booking_deposit(deposit_id)
        if deposit is None:
            raise NotFoundError(f"Booking deposit {deposit_id} not found")
        return deposit

    def _check_payer(self, quote: QuoteRequest) -> None:
        if not quote.client_email or not quote.client_email.strip():
            raise InvalidPayerError(f"Quote {quote.id} has no payer email address")

    def _issue_payment(self, quote: QuoteRequest, deposit: BookingDeposit) -> AcceptedBooking:
        name_first, name_last = _split_name(quote.client_name)
        description = " ".join(
            part for part in (quote.event_type, quote.event_date.isoformat() if quote.event_date else None) if part
        )
        session = self.gateway.build_payment(
            amount=deposit.amount,
            item_name=f"Booking deposit for quote #{quote.id}",
            email_address=quote.client_email,
            m_payment_id=deposit.m_payment_id,
            name_first=name_first,
            name_last=name_last,
            item_description=description or None,
        )
        return AcceptedBooking(redirect_url=session.redirect_url, deposit_id=deposit.id, session=session)

    async def accept_quote(self, quote_id: int) -> AcceptedBooking:
        """
        Accept the quote's sent revision and open a payment for its deposit.

        Calling again after a partial failure is safe: an accepted quote reuses
        its pending deposit and only the redirect URL is rebuilt.

        Args:
            quote_id: Quote request ID

        Returns:
            AcceptedBooking with the gateway redirect URL and deposit ID

        Raises:
            NotFoundError: Unknown quote request
            InvalidTransitionError: Quote is not acceptable, or changed concurrently
            InvalidAmountError / InvalidPayerError: Malformed payment input, nothing written
        """
        quote = await self._get_quote(quote_id)

        if quote.status in PAYABLE_STATUSES:
            return await self._resume_payment(quote)

        revision = await self.store.get_latest_sent_revision(quote_id)
        next_status = transition(quote.status, QuoteEvent.ACCEPT, revision=revision)

        # Reject malformed payment input before any write
        format_amount(revision.amount)
        self._check_payer(quote)

        expected_status = quote.status
        updated = await self.store.update_quote_request_status(
            quote_id,
            expected_status,
            next_status,
            quote_amount=revision.amount,
            responded_at=datetime.utcnow(),
        )
        if not updated:
            current = await self.store.get_quote_request(quote_id)
            current_status = current.status.value if current else "missing"
            raise InvalidTransitionError(
                f"Quote {quote_id} changed from '{expected_status.value}' to '{current_status}' "
                f"before it could be accepted",
                current_status=current_status,
                event=QuoteEvent.ACCEPT.value,
            )

        logger.info(f"Quote {quote_id} accepted at revision {revision.revision_number} ({revision.amount})")
        await event_bus.publish(LifecycleEvent.QUOTE_ACCEPTED, {
            "quote_id": quote_id,
            "revision_id": revision.id,
            "amount": str(revision.amount),
        })

        deposit = await self.store.create_booking_deposit(
            quote_request_id=quote_id,
            client_id=quote.client_id,
            vendor_id=quote.vendor_id,
            amount=revision.amount,
        )
        await event_bus.publish(LifecycleEvent.DEPOSIT_CREATED, {
            "quote_id": quote_id,
            "deposit_id": deposit.id,
            "amount": str(deposit.amount),
        })

        quote = await self._get_quote(quote_id)
        transition(quote.status, QuoteEvent.INITIATE_PAYMENT, deposit=deposit)
        return self._issue_payment(quote, deposit)

    async def _resume_payment(self, quote: QuoteRequest) -> AcceptedBooking:
        """Reopen payment for an accepted or finalised quote without duplicating its deposit."""
        self._check_payer(quote)
        deposit = await self.store.get_active_deposit(quote.id)

        if deposit is not None and deposit.payment_status == PaymentStatus.PAID:
            # Paid but not booked: finish the settlement instead of charging again
            await self.complete_settlement(deposit.id)
            raise InvalidTransitionError(
                f"Deposit {deposit.id} for quote {quote.id} is already paid",
                current_status=QuoteStatus.BOOKED.value,
                event=QuoteEvent.INITIATE_PAYMENT.value,
            )

        if deposit is None:
            amount = quote.quote_amount
            if amount is None:
                revision = await self.store.get_latest_sent_revision(quote.id)
                if revision is None:
                    raise InvalidTransitionError(
                        f"Quote {quote.id} has no priced revision to pay",
                        current_status=quote.status.value,
                        event=QuoteEvent.INITIATE_PAYMENT.value,
                    )
                amount = revision.amount
            format_amount(amount)
            deposit = await self.store.create_booking_deposit(
                quote_request_id=quote.id,
                client_id=quote.client_id,
                vendor_id=quote.vendor_id,
                amount=amount,
            )
            await event_bus.publish(LifecycleEvent.DEPOSIT_CREATED, {
                "quote_id": quote.id,
                "deposit_id": deposit.id,
                "amount": str(deposit.amount),
            })
        else:
            logger.info(f"Reusing pending deposit {deposit.id} for quote {quote.id}")

        transition(quote.status, QuoteEvent.INITIATE_PAYMENT, deposit=deposit)
        return self._issue_payment(quote, deposit)

    async def confirm_payment(self, deposit_id: int, gateway_payment_id: str | None = None) -> Settlement:
        """
        Settle a deposit: mark it paid, then book its quote.

        Idempotent. A second call on a paid deposit skips the deposit write and
        only retries the quote write if that is still outstanding.

        Raises:
            NotFoundError: Unknown deposit
            InvalidTransitionError: Deposit already failed
            SettlementInconsistencyError: Deposit paid but the quote write did not land
        """
        deposit = await self._get_deposit(deposit_id)

        if deposit.payment_status == PaymentStatus.FAILED:
            raise InvalidTransitionError(
                f"Deposit {deposit_id} has failed and cannot be settled",
                event=QuoteEvent.CONFIRM_PAYMENT.value,
            )

        if deposit.payment_status == PaymentStatus.PENDING:
            fields = {"paid_at": datetime.utcnow()}
            if gateway_payment_id:
                fields["gateway_payment_id"] = gateway_payment_id
            updated = await self.store.update_booking_deposit_status(
                deposit_id, PaymentStatus.PENDING, PaymentStatus.PAID, **fields
            )
            if not updated:
                deposit = await self._get_deposit(deposit_id)
                if deposit.payment_status != PaymentStatus.PAID:
                    raise InvalidTransitionError(
                        f"Deposit {deposit_id} changed to '{deposit.payment_status.value}' during settlement",
                        event=QuoteEvent.CONFIRM_PAYMENT.value,
                    )
            else:
                logger.info(f"Deposit {deposit_id} marked paid")
                await event_bus.publish(LifecycleEvent.DEPOSIT_PAID, {
                    "quote_id": deposit.quote_request_id,
                    "deposit_id": deposit_id,
                })
        else:
            logger.info(f"Deposit {deposit_id} already paid, skipping deposit write")

        return await self.complete_settlement(deposit_id)

    async def complete_settlement(self, deposit_id: int) -> Settlement:
        """
        Book the quote of a paid deposit. Never writes the deposit.

        Raises:
            NotFoundError: Unknown deposit
            InvalidTransitionError: Deposit is not paid
            SettlementInconsistencyError: The quote write failed
        """
        deposit = await self._get_deposit(deposit_id)
        if deposit.payment_status != PaymentStatus.PAID:
            raise InvalidTransitionError(
                f"Deposit {deposit_id} is '{deposit.payment_status.value}', not paid",
                event=QuoteEvent.CONFIRM_PAYMENT.value,
            )

        quote_id = deposit.quote_request_id
        quote = await self._get_quote(quote_id)
        if quote.status == QuoteStatus.BOOKED:
            return Settlement(deposit=deposit, quote=quote, already_settled=True)

        try:
            next_status = transition(quote.status, QuoteEvent.CONFIRM_PAYMENT, deposit=deposit)
            updated = await self.store.update_quote_request_status(quote_id, quote.status, next_status)
        except InvalidTransitionError as e:
            await self._report_inconsistency(deposit_id, quote_id, e.message)
            raise SettlementInconsistencyError(
                f"Deposit {deposit_id} is paid but quote {quote_id} cannot be booked: {e.message}",
                deposit_id=deposit_id,
                quote_id=quote_id,
            ) from e
        except SQLAlchemyError as e:
            await self.store.rollback()
            await self._report_inconsistency(deposit_id, quote_id, str(e))
            raise SettlementInconsistencyError(
                f"Deposit {deposit_id} is paid but booking quote {quote_id} failed",
                deposit_id=deposit_id,
                quote_id=quote_id,
            ) from e

        if not updated:
            quote = await self._get_quote(quote_id)
            if quote.status != QuoteStatus.BOOKED:
                await self._report_inconsistency(deposit_id, quote_id, f"status is '{quote.status.value}'")
                raise SettlementInconsistencyError(
                    f"Deposit {deposit_id} is paid but quote {quote_id} moved to '{quote.status.value}'",
                    deposit_id=deposit_id,
                    quote_id=quote_id,
                )
            return Settlement(deposit=deposit, quote=quote, already_settled=True)

        quote = await self._get_quote(quote_id)
        logger.info(f"Quote {quote_id} booked with deposit {deposit_id}")
        await event_bus.publish(LifecycleEvent.QUOTE_BOOKED, {
            "quote_id": quote_id,
            "deposit_id": deposit_id,
            "amount": str(deposit.amount),
        })
        return Settlement(deposit=deposit, quote=quote)

    async def _report_inconsistency(self, deposit_id: int, quote_id: int, reason: str) -> None:
        logger.error(
            f"Settlement inconsistency: deposit {deposit_id} paid, quote {quote_id} not booked ({reason})"
        )
        await event_bus.publish(LifecycleEvent.SETTLEMENT_INCONSISTENT, {
            "quote_id": quote_id,
            "deposit_id": deposit_id,
        })

    async def cancel_payment(self, deposit_id: int) -> BookingDeposit:
        """
        Record that the payer left the gateway without paying.

        The deposit stays pending so the next attempt reuses it.
        """
        deposit = await self._get_deposit(deposit_id)
        if deposit.payment_status == PaymentStatus.PENDING:
            logger.info(f"Payment cancelled for deposit {deposit_id}, deposit left pending for retry")
            await event_bus.publish(LifecycleEvent.PAYMENT_CANCELLED, {
                "quote_id": deposit.quote_request_id,
                "deposit_id": deposit_id,
            })
        else:
            logger.warning(f"Ignoring cancel for deposit {deposit_id} with status {deposit.payment_status.value}")
        return deposit

    async def fail_payment(self, deposit_id: int, reason: str | None = None) -> BookingDeposit:
        """
        Mark a pending deposit failed after an explicit gateway failure notice.

        A later payment attempt for the quote creates a fresh deposit. Paid
        deposits are never changed.
        """
        deposit = await self._get_deposit(deposit_id)
        if deposit.payment_status != PaymentStatus.PENDING:
            logger.warning(f"Ignoring failure notice for deposit {deposit_id} with status {deposit.payment_status.value}")
            return deposit

        updated = await self.store.update_booking_deposit_status(
            deposit_id,
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
            failure_reason=reason or "Payment failed at gateway",
        )
        deposit = await self._get_deposit(deposit_id)
        if updated:
            logger.warning(f"Deposit {deposit_id} marked failed: {deposit.failure_reason}")
            await event_bus.publish(LifecycleEvent.PAYMENT_FAILED, {
                "quote_id": deposit.quote_request_id,
                "deposit_id": deposit_id,
            })
        return deposit

    async def reconcile(self) -> ReconciliationReport:
        """Retry the quote write for every paid deposit whose quote is not booked."""
        report = ReconciliationReport()
        for deposit in await self.store.list_unbooked_paid_deposits():
            try:
                report.settled.append(await self.complete_settlement(deposit.id))
            except SettlementInconsistencyError as e:
                logger.error(f"Reconciliation failed for deposit {deposit.id}: {e.message}")
                report.failed_deposit_ids.append(deposit.id)

        if report.settled or report.failed_deposit_ids:
            logger.info(
                f"Reconciliation: {len(report.settled)} settled, {len(report.failed_deposit_ids)} still inconsistent"
            )
        return report
