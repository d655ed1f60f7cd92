"""Quote revision database model."""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from sqlalchemy import Integer, Text, Numeric, ForeignKey, TIMESTAMP, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quotebook.database import Base


class RevisionStatus(str, Enum):
    """Quote revision status enum."""
    DRAFT = "draft"
    SENT = "sent"
    SUPERSEDED = "superseded"


class QuoteRevision(Base):
    """One vendor-issued price proposal against a quote request."""

    __tablename__ = "quote_revisions"
    __table_args__ = (
        UniqueConstraint("quote_request_id", "revision_number", name="uq_quote_revisions_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    quote_request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("quote_requests.id"),
        nullable=False,
        index=True
    )
    vendor_id: Mapped[int] = mapped_column(Integer, nullable=False)

    revision_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Proposal
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    validity_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)

    status: Mapped[RevisionStatus] = mapped_column(
        SQLEnum(RevisionStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=RevisionStatus.DRAFT,
        index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    sent_at: Mapped[datetime | None] = mapped_column(TIMESTAMP, nullable=True)

    # Relationships
    quote_request: Mapped["QuoteRequest"] = relationship("QuoteRequest", back_populates="revisions")

    @property
    def expires_at(self) -> datetime | None:
        """When a sent revision stops being acceptable."""
        if self.sent_at is None:
            return None
        return self.sent_at + timedelta(days=self.validity_days)

    def is_expired(self, now: datetime | None = None) -> bool:
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return (now or datetime.utcnow()) > expires_at

    def __repr__(self) -> str:
        return (
            f"<QuoteRevision(id={self.id}, quote_request_id={self.quote_request_id}, "
            f"revision_number={self.revision_number}, status={self.status})>"
        )
