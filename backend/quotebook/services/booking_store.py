"""
Persistence operations for quote requests, revisions and booking deposits.

Every status write is a compare-and-set: the UPDATE is filtered on the status
the caller expects, and a zero rowcount means another session got there
first. Each write commits on its own; there is no transaction spanning a
deposit and its quote request.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quotebook.core.errors import InvalidTransitionError
from quotebook.models.booking_deposit import BookingDeposit, PaymentStatus
from quotebook.models.quote_request import QuoteRequest, QuoteStatus
from quotebook.models.quote_revision import QuoteRevision, RevisionStatus

logger = logging.getLogger(__name__)


class BookingStore:
    """Store contract consumed by the booking orchestrator."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def rollback(self) -> None:
        await self.db.rollback()

    # Quote requests

    async def get_quote_request(self, quote_id: int) -> Optional[QuoteRequest]:
        return await self.db.get(QuoteRequest, quote_id, populate_existing=True)

    async def update_quote_request_status(
        self,
        quote_id: int,
        expected_status: QuoteStatus,
        new_status: QuoteStatus,
        **fields: Any,
    ) -> bool:
        """
        Set a quote request's status if it still has `expected_status`.

        Args:
            quote_id: Quote request ID
            expected_status: Status read before deciding on the transition
            new_status: Status to write
            **fields: Extra columns written in the same UPDATE

        Returns:
            True if the row was updated, False on a compare-and-set miss
        """
        result = await self.db.execute(
            update(QuoteRequest)
            .where(QuoteRequest.id == quote_id, QuoteRequest.status == expected_status)
            .values(status=new_status, updated_at=datetime.utcnow(), **fields)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        updated = result.rowcount == 1
        if not updated:
            logger.warning(
                f"Quote {quote_id} status write {expected_status.value}->{new_status.value} "
                f"lost compare-and-set"
            )
        return updated

    # Revisions

    async def get_latest_sent_revision(self, quote_id: int) -> Optional[QuoteRevision]:
        result = await self.db.execute(
            select(QuoteRevision)
            .where(
                QuoteRevision.quote_request_id == quote_id,
                QuoteRevision.status == RevisionStatus.SENT,
            )
            .order_by(QuoteRevision.revision_number.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_draft_revision(self, quote_id: int) -> Optional[QuoteRevision]:
        result = await self.db.execute(
            select(QuoteRevision)
            .where(
                QuoteRevision.quote_request_id == quote_id,
                QuoteRevision.status == RevisionStatus.DRAFT,
            )
            .order_by(QuoteRevision.revision_number.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_revisions(self, quote_id: int) -> list[QuoteRevision]:
        result = await self.db.execute(
            select(QuoteRevision)
            .where(QuoteRevision.quote_request_id == quote_id)
            .order_by(QuoteRevision.revision_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def next_revision_number(self, quote_id: int) -> int:
        revisions = await self.list_revisions(quote_id)
        return max((r.revision_number for r in revisions), default=0) + 1

    async def update_revision_status(
        self,
        revision_id: int,
        expected_status: RevisionStatus,
        new_status: RevisionStatus,
        **fields: Any,
    ) -> bool:
        result = await self.db.execute(
            update(QuoteRevision)
            .where(QuoteRevision.id == revision_id, QuoteRevision.status == expected_status)
            .values(status=new_status, **fields)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    # Deposits

    async def get_booking_deposit(self, deposit_id: int) -> Optional[BookingDeposit]:
        return await self.db.get(BookingDeposit, deposit_id, populate_existing=True)

    async def get_active_deposit(self, quote_id: int) -> Optional[BookingDeposit]:
        """The quote request's live deposit (pending or paid), if any."""
        result = await self.db.execute(
            select(BookingDeposit)
            .where(
                BookingDeposit.quote_request_id == quote_id,
                BookingDeposit.payment_status != PaymentStatus.FAILED,
            )
            .order_by(BookingDeposit.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create_booking_deposit(
        self,
        quote_request_id: int,
        client_id: int,
        vendor_id: int,
        amount: Decimal,
    ) -> BookingDeposit:
        """
        Insert a pending deposit.

        Raises:
            InvalidTransitionError: If the quote request already has a live deposit
        """
        deposit = BookingDeposit(
            quote_request_id=quote_request_id,
            client_id=client_id,
            vendor_id=vendor_id,
            amount=amount,
            payment_status=PaymentStatus.PENDING,
        )
        self.db.add(deposit)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(f"Duplicate live deposit rejected for quote {quote_request_id}")
            raise InvalidTransitionError(
                f"Quote {quote_request_id} already has a live deposit",
                event="initiate_payment",
            )
        await self.db.refresh(deposit)

        logger.info(f"Created deposit {deposit.id} for quote {quote_request_id}: amount={amount}")
        return deposit

    async def update_booking_deposit_status(
        self,
        deposit_id: int,
        expected_status: PaymentStatus,
        new_status: PaymentStatus,
        **fields: Any,
    ) -> bool:
        result = await self.db.execute(
            update(BookingDeposit)
            .where(BookingDeposit.id == deposit_id, BookingDeposit.payment_status == expected_status)
            .values(payment_status=new_status, **fields)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def list_unbooked_paid_deposits(self) -> list[BookingDeposit]:
        """Paid deposits whose quote request never reached booked."""
        result = await self.db.execute(
            select(BookingDeposit)
            .join(QuoteRequest, QuoteRequest.id == BookingDeposit.quote_request_id)
            .where(
                BookingDeposit.payment_status == PaymentStatus.PAID,
                QuoteRequest.status != QuoteStatus.BOOKED,
            )
            .order_by(BookingDeposit.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_vendor_deposits(self, vendor_id: int) -> list[BookingDeposit]:
        result = await self.db.execute(
            select(BookingDeposit)
            .where(BookingDeposit.vendor_id == vendor_id)
            .order_by(BookingDeposit.created_at.desc(), BookingDeposit.id.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
