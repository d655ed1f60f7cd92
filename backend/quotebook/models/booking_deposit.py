"""Booking deposit database model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Integer, String, Text, Numeric, ForeignKey, TIMESTAMP, Index, text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quotebook.database import Base


class PaymentStatus(str, Enum):
    """Deposit payment status enum."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class BookingDeposit(Base):
    """Monetary obligation created when a client accepts a quote."""

    __tablename__ = "booking_deposits"
    __table_args__ = (
        # At most one live (non-failed) deposit per quote request
        Index(
            "uq_booking_deposits_live_quote",
            "quote_request_id",
            unique=True,
            sqlite_where=text("payment_status != 'failed'"),
            postgresql_where=text("payment_status != 'failed'"),
        ),
    )

    # Primary Key (doubles as the gateway m_payment_id)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign Keys
    quote_request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("quote_requests.id"),
        nullable=False,
        index=True
    )
    client_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    vendor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Status
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True
    )

    # Gateway Details
    gateway_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)  # pf_payment_id
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    paid_at: Mapped[datetime | None] = mapped_column(TIMESTAMP, nullable=True)

    # Relationships
    quote_request: Mapped["QuoteRequest"] = relationship("QuoteRequest", back_populates="deposits")

    @property
    def m_payment_id(self) -> str:
        """Correlation id sent to the gateway."""
        return str(self.id)

    def __repr__(self) -> str:
        return (
            f"<BookingDeposit(id={self.id}, quote_request_id={self.quote_request_id}, "
            f"payment_status={self.payment_status})>"
        )
