"""Quote request database model."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List

from sqlalchemy import Integer, String, Text, Numeric, Date, TIMESTAMP, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quotebook.database import Base


class QuoteStatus(str, Enum):
    """Quote request status enum."""
    PENDING = "pending"
    QUOTED = "quoted"
    AMENDED = "amended"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FINALISED = "finalised"
    BOOKED = "booked"
    TOUR_REQUESTED = "tour_requested"


# Statuses in which quote_amount may be set
PRICED_STATUSES = frozenset({
    QuoteStatus.QUOTED,
    QuoteStatus.AMENDED,
    QuoteStatus.ACCEPTED,
    QuoteStatus.FINALISED,
    QuoteStatus.BOOKED,
})


class QuoteRequest(Base):
    """A client's request for pricing against a vendor or venue listing."""

    __tablename__ = "quote_requests"

    # Primary Key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # References to records owned by the accounts/catalog services
    client_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    vendor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Payer identity
    client_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    client_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # Event Details
    event_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    budget: Mapped[str | None] = mapped_column(String(100), nullable=True)  # free text, e.g. "R10k - R15k"

    # Status
    status: Mapped[QuoteStatus] = mapped_column(
        SQLEnum(QuoteStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=QuoteStatus.PENDING,
        index=True
    )

    # Pricing
    quote_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True
    )  # Amount of the current sent revision

    # Client Response
    client_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(TIMESTAMP, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    # Relationships
    revisions: Mapped[List["QuoteRevision"]] = relationship(
        "QuoteRevision",
        back_populates="quote_request",
        order_by="QuoteRevision.revision_number"
    )
    deposits: Mapped[List["BookingDeposit"]] = relationship(
        "BookingDeposit",
        back_populates="quote_request",
        order_by="BookingDeposit.id"
    )

    def __repr__(self) -> str:
        return f"<QuoteRequest(id={self.id}, vendor_id={self.vendor_id}, status={self.status})>"
