"""Database models package."""

from quotebook.models.quote_request import QuoteRequest, QuoteStatus, PRICED_STATUSES
from quotebook.models.quote_revision import QuoteRevision, RevisionStatus
from quotebook.models.booking_deposit import BookingDeposit, PaymentStatus

__all__ = [
    "QuoteRequest",
    "QuoteStatus",
    "PRICED_STATUSES",
    "QuoteRevision",
    "RevisionStatus",
    "BookingDeposit",
    "PaymentStatus",
]
