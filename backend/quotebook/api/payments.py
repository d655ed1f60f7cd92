"""Payments API router - browser callbacks and gateway notifications."""

import logging
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from quotebook.api.deps import get_current_client_id, get_orchestrator
from quotebook.core.errors import NotFoundError, SettlementInconsistencyError
from quotebook.schemas.booking import PaymentCallbackRequest, PaymentCallbackResponse
from quotebook.services import quote_service
from quotebook.services.booking_orchestrator import BookingOrchestrator
from quotebook.services.callback_interceptor import (
    CallbackInterceptor,
    CallbackOutcome,
    classify,
    payment_sessions,
)
from quotebook.services.payment_gateway import PaymentSession
from quotebook.services.payment_notification_service import payment_notification_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/callback", response_model=PaymentCallbackResponse)
async def payment_callback(
    request: PaymentCallbackRequest,
    client_id: int = Depends(get_current_client_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """
    Report a URL the embedded payment browser navigated to.

    Return URLs settle the deposit, cancel URLs leave it pending, anything
    else is gateway-internal navigation and is ignored. Only the first
    return/cancel URL of a payment session is acted on, and only for the
    client that owns the deposit.

    Raises:
        NotFoundError: No deposit matches m_payment_id
        NotAuthorizedError: The deposit belongs to another client
    """
    m_payment_id = request.m_payment_id
    outcome = classify(request.url)

    if outcome == CallbackOutcome.OTHER:
        return PaymentCallbackResponse(m_payment_id=m_payment_id, outcome=outcome, dispatched=False)

    if not m_payment_id.isdigit():
        raise NotFoundError(f"Booking deposit {m_payment_id} not found")
    await quote_service.get_client_deposit(orchestrator.store.db, int(m_payment_id), client_id)

    if payment_sessions.finished_outcome(m_payment_id) is not None:
        logger.info(f"Payment session {m_payment_id} already finished, ignoring {outcome.value} callback")
        return PaymentCallbackResponse(m_payment_id=m_payment_id, outcome=outcome, dispatched=False)

    session = payment_sessions.get(m_payment_id)
    if session is None:
        # Opened before a restart; ownership was checked above
        logger.warning(f"No open payment session for m_payment_id={m_payment_id}")
        session = PaymentSession(redirect_url="", signature="", m_payment_id=m_payment_id)

    interceptor = CallbackInterceptor(orchestrator, session)
    try:
        await interceptor.handle_navigation(request.url)
    except SettlementInconsistencyError:
        payment_sessions.close(m_payment_id, outcome)
        raise
    payment_sessions.close(m_payment_id, outcome)

    deposit = await orchestrator.store.get_booking_deposit(interceptor.deposit_id)
    quote = await orchestrator.store.get_quote_request(deposit.quote_request_id)
    return PaymentCallbackResponse(
        m_payment_id=m_payment_id,
        outcome=outcome,
        dispatched=True,
        payment_status=deposit.payment_status,
        quote_status=quote.status,
    )


@router.post("/notify", response_class=PlainTextResponse)
async def payment_notify(
    request: Request,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """
    PayFast Instant Transaction Notification (ITN) endpoint.

    PayFast POSTs application/x-www-form-urlencoded parameters signed with the
    merchant passphrase.
    """
    body = (await request.body()).decode("utf-8")
    params = dict(parse_qsl(body, keep_blank_values=True))

    result = await payment_notification_service.handle_notification(orchestrator, params)
    logger.info(f"ITN for m_payment_id={params.get('m_payment_id')} handled: {result.value}")
    return PlainTextResponse("OK")
