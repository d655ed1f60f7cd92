"""Error taxonomy for the quote-to-booking lifecycle."""

from typing import Optional


class BookingError(Exception):
    """Base class for every lifecycle error surfaced by the services."""

    code = "BOOKING_ERROR"
    action = "contact_support"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTransitionError(BookingError):
    """A state guard failed. The caller should re-fetch and re-display the current status."""

    code = "INVALID_TRANSITION"
    action = "refresh"

    def __init__(self, message: str, current_status: Optional[str] = None, event: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status
        self.event = event


class InvalidAmountError(BookingError):
    code = "INVALID_AMOUNT"
    action = "refresh"


class InvalidPayerError(BookingError):
    code = "INVALID_PAYER"
    action = "refresh"


class SigningError(BookingError):
    """Signature computation failed on malformed input. Indicates a defect, never user error."""

    code = "SIGNING_FAILED"
    action = "contact_support"


class InvalidSignatureError(BookingError):
    """A gateway notification carried a signature that does not match its parameters."""

    code = "INVALID_SIGNATURE"
    action = "contact_support"


class NotFoundError(BookingError, LookupError):
    code = "NOT_FOUND"
    action = "refresh"


class NotAuthorizedError(BookingError):
    """The caller is not a party to the quote request."""

    code = "NOT_AUTHORIZED"
    action = "refresh"


class SettlementInconsistencyError(BookingError):
    """
    The deposit is marked paid but the quote status write did not land.

    Recovery retries the quote write only (see BookingOrchestrator.complete_settlement);
    deposit creation and payment must never be repeated.
    """

    code = "SETTLEMENT_PENDING"
    action = "none"

    def __init__(self, message: str, deposit_id: int, quote_id: int):
        super().__init__(message)
        self.deposit_id = deposit_id
        self.quote_id = quote_id
