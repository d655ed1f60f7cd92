"""Classification of payment-browser navigation and one-shot settlement dispatch."""

import logging
from collections import OrderedDict
from enum import Enum
from typing import Dict, Optional
from urllib.parse import urlsplit

from quotebook.core.errors import SettlementInconsistencyError
from quotebook.services.booking_orchestrator import BookingOrchestrator
from quotebook.services.payment_gateway import PaymentSession

logger = logging.getLogger(__name__)

RETURN_PATH = "payment/return"
CANCEL_PATH = "payment/cancel"


class CallbackOutcome(str, Enum):
    SUCCESS = "success"
    CANCEL = "cancel"
    OTHER = "other"


def classify(url: str) -> CallbackOutcome:
    """
    Classify a URL observed in the embedded payment browser.

    Only the path is matched, so a query string mentioning the other endpoint
    cannot flip the outcome. Anything that is not one of our return/cancel
    endpoints is navigation inside the gateway's own pages.
    """
    path = urlsplit(url).path
    if CANCEL_PATH in path:
        return CallbackOutcome.CANCEL
    if RETURN_PATH in path:
        return CallbackOutcome.SUCCESS
    return CallbackOutcome.OTHER


class CallbackInterceptor:
    """
    Feeds navigation events of one payment session to the orchestrator.

    The first success or cancel URL that is dispatched without error finishes
    the session; every later one is ignored, so a browser re-navigation cannot
    settle or cancel twice. A dispatch that fails leaves the session open for
    the next navigation.
    """

    def __init__(self, orchestrator: BookingOrchestrator, session: PaymentSession):
        self.orchestrator = orchestrator
        self.session = session
        self.outcome: Optional[CallbackOutcome] = None

    @property
    def deposit_id(self) -> int:
        return int(self.session.m_payment_id)

    @property
    def finished(self) -> bool:
        return self.outcome is not None

    async def handle_navigation(self, url: str) -> CallbackOutcome:
        """
        Handle one navigation event.

        Returns:
            The URL's classification

        Raises:
            SettlementInconsistencyError: Deposit paid but the quote was not booked;
                the session still counts as finished
            SQLAlchemyError: The deposit write failed; the session stays open
        """
        outcome = classify(url)
        if outcome == CallbackOutcome.OTHER:
            return outcome

        if self.finished:
            logger.info(
                f"Ignoring repeated {outcome.value} callback for m_payment_id={self.session.m_payment_id}"
            )
            return outcome

        if outcome == CallbackOutcome.SUCCESS:
            try:
                await self.orchestrator.confirm_payment(self.deposit_id)
            except SettlementInconsistencyError:
                self.outcome = outcome
                raise
        else:
            await self.orchestrator.cancel_payment(self.deposit_id)
        self.outcome = outcome
        return outcome


class PaymentSessionRegistry:
    """
    Open payment sessions keyed by m_payment_id, for the lifetime of the payment surface.

    Outcomes of finished sessions are remembered for the most recent
    `max_finished` sessions only. Older repeats fall through to the deposit's
    persisted status, where settlement and cancellation are no-ops.
    """

    def __init__(self, max_finished: int = 1024):
        self._sessions: Dict[str, PaymentSession] = {}
        self._finished: "OrderedDict[str, CallbackOutcome]" = OrderedDict()
        self._max_finished = max_finished

    def open(self, session: PaymentSession) -> None:
        self._sessions[session.m_payment_id] = session
        self._finished.pop(session.m_payment_id, None)

    def get(self, m_payment_id: str) -> Optional[PaymentSession]:
        return self._sessions.get(m_payment_id)

    def finished_outcome(self, m_payment_id: str) -> Optional[CallbackOutcome]:
        return self._finished.get(m_payment_id)

    def close(self, m_payment_id: str, outcome: CallbackOutcome) -> None:
        """Discard a session after its terminal callback."""
        self._sessions.pop(m_payment_id, None)
        self._finished[m_payment_id] = outcome
        self._finished.move_to_end(m_payment_id)
        while len(self._finished) > self._max_finished:
            self._finished.popitem(last=False)

    def clear(self) -> None:
        self._sessions.clear()
        self._finished.clear()

    def __len__(self) -> int:
        return len(self._sessions)


# Singleton
payment_sessions = PaymentSessionRegistry()
