"""Quote request and revision schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, computed_field

from quotebook.models.quote_request import QuoteStatus
from quotebook.models.quote_revision import RevisionStatus
from quotebook.services.quote_lifecycle import allowed_events


class QuoteRequestCreate(BaseModel):
    """Request for pricing from a vendor or venue."""

    vendor_id: int = Field(..., description="Vendor or venue listing being asked for a quote")
    client_name: Optional[str] = Field(None, max_length=200)
    client_email: Optional[str] = Field(None, max_length=320, description="Used as the payer email at checkout")
    event_type: Optional[str] = Field(None, max_length=100, description="e.g. wedding, birthday, corporate")
    event_date: Optional[date] = None
    details: Optional[str] = Field(None, max_length=4000)
    budget: Optional[str] = Field(None, max_length=100, description="Free-text budget, e.g. 'R10k - R15k'")


class QuoteRequestResponse(BaseModel):
    """Quote request with current status."""

    id: int
    client_id: int
    vendor_id: int
    client_name: Optional[str]
    client_email: Optional[str]
    event_type: Optional[str]
    event_date: Optional[date]
    details: Optional[str]
    budget: Optional[str]
    status: QuoteStatus
    quote_amount: Optional[Decimal]
    client_notes: Optional[str]
    responded_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def available_actions(self) -> list[str]:
        """Lifecycle events currently defined for this status."""
        return [event.value for event in allowed_events(self.status)]

    class Config:
        from_attributes = True


class RevisionDraft(BaseModel):
    """Vendor's proposal fields, saved as a draft or sent directly."""

    amount: Decimal = Field(..., gt=0, description="Quoted price")
    description: Optional[str] = Field(None, max_length=4000)
    terms: Optional[str] = Field(None, max_length=4000)
    validity_days: Optional[int] = Field(None, ge=1, le=90, description="Days the client has to accept once sent")


class RevisionSend(BaseModel):
    """Send the current draft, optionally overwriting it first."""

    amount: Optional[Decimal] = Field(None, gt=0, description="Omit to send the saved draft as-is")
    description: Optional[str] = Field(None, max_length=4000)
    terms: Optional[str] = Field(None, max_length=4000)
    validity_days: Optional[int] = Field(None, ge=1, le=90)


class RevisionResponse(BaseModel):
    id: int
    quote_request_id: int
    vendor_id: int
    revision_number: int
    amount: Decimal
    description: Optional[str]
    terms: Optional[str]
    validity_days: int
    status: RevisionStatus
    created_at: datetime
    sent_at: Optional[datetime]
    expires_at: Optional[datetime]

    class Config:
        from_attributes = True


class QuoteReject(BaseModel):
    """Client rejection. Feedback is required so the vendor can revise."""

    notes: str = Field(..., min_length=1, max_length=2000, description="Why the quote does not work")


class QuoteApprove(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)
