"""Booking deposit and payment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from quotebook.models.booking_deposit import PaymentStatus
from quotebook.models.quote_request import QuoteStatus
from quotebook.services.callback_interceptor import CallbackOutcome


class AcceptQuoteResponse(BaseModel):
    """Everything the client needs to open the embedded payment browser."""

    quote_id: int
    deposit_id: int
    redirect_url: str
    m_payment_id: str


class DepositResponse(BaseModel):
    id: int
    quote_request_id: int
    client_id: int
    vendor_id: int
    amount: Decimal
    payment_status: PaymentStatus
    gateway_payment_id: Optional[str]
    failure_reason: Optional[str]
    created_at: datetime
    paid_at: Optional[datetime]

    class Config:
        from_attributes = True


class SettlementResponse(BaseModel):
    deposit_id: int
    quote_id: int
    payment_status: PaymentStatus
    quote_status: QuoteStatus
    already_settled: bool


class ReconciliationResponse(BaseModel):
    settled: list[SettlementResponse]
    failed_deposit_ids: list[int]


class PaymentCallbackRequest(BaseModel):
    """A navigation event observed by the embedded payment browser."""

    m_payment_id: str = Field(..., pattern=r"^\d+$", description="Correlation id of the payment session")
    url: str = Field(..., min_length=1, max_length=4096)


class PaymentCallbackResponse(BaseModel):
    m_payment_id: str
    outcome: CallbackOutcome
    dispatched: bool = Field(..., description="False for gateway-internal navigation and repeated callbacks")
    payment_status: Optional[PaymentStatus] = None
    quote_status: Optional[QuoteStatus] = None
