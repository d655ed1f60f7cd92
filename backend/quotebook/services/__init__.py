"""Business logic services package."""

from quotebook.services.quote_lifecycle import QuoteEvent, transition, allowed_events
from quotebook.services.payment_gateway import PayFastClient, PayFastPaymentData, PaymentSession, payfast_client
from quotebook.services.booking_store import BookingStore
from quotebook.services.booking_orchestrator import (
    BookingOrchestrator,
    AcceptedBooking,
    Settlement,
    ReconciliationReport,
)
from quotebook.services.callback_interceptor import (
    CallbackInterceptor,
    CallbackOutcome,
    PaymentSessionRegistry,
    classify,
    payment_sessions,
)
from quotebook.services.payment_notification_service import (
    PaymentNotificationService,
    NotificationResult,
    payment_notification_service,
)
from quotebook.services.quote_service import (
    create_quote_request,
    get_quote_request,
    save_draft_revision,
    send_revision,
    reject_quote,
    approve_amendment,
    request_tour,
    record_vendor_contact,
    list_revisions,
    list_vendor_bookings,
)

__all__ = [
    # Lifecycle
    "QuoteEvent",
    "transition",
    "allowed_events",
    # Gateway
    "PayFastClient",
    "PayFastPaymentData",
    "PaymentSession",
    "payfast_client",
    # Orchestration
    "BookingStore",
    "BookingOrchestrator",
    "AcceptedBooking",
    "Settlement",
    "ReconciliationReport",
    # Callbacks
    "CallbackInterceptor",
    "CallbackOutcome",
    "PaymentSessionRegistry",
    "classify",
    "payment_sessions",
    "PaymentNotificationService",
    "NotificationResult",
    "payment_notification_service",
    # Quote service
    "create_quote_request",
    "get_quote_request",
    "save_draft_revision",
    "send_revision",
    "reject_quote",
    "approve_amendment",
    "request_tour",
    "record_vendor_contact",
    "list_revisions",
    "list_vendor_bookings",
]
