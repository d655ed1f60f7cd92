"""Pydantic schemas package."""

from quotebook.schemas.quote import (
    QuoteRequestCreate,
    QuoteRequestResponse,
    RevisionDraft,
    RevisionSend,
    RevisionResponse,
    QuoteReject,
    QuoteApprove,
)
from quotebook.schemas.booking import (
    AcceptQuoteResponse,
    DepositResponse,
    SettlementResponse,
    ReconciliationResponse,
    PaymentCallbackRequest,
    PaymentCallbackResponse,
)

__all__ = [
    # Quote schemas
    "QuoteRequestCreate",
    "QuoteRequestResponse",
    "RevisionDraft",
    "RevisionSend",
    "RevisionResponse",
    "QuoteReject",
    "QuoteApprove",
    # Booking schemas
    "AcceptQuoteResponse",
    "DepositResponse",
    "SettlementResponse",
    "ReconciliationResponse",
    "PaymentCallbackRequest",
    "PaymentCallbackResponse",
]
