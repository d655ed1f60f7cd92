"""PayFast redirect URL construction."""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict

from quotebook.config import settings
from quotebook.core import signature
from quotebook.core.errors import InvalidAmountError, InvalidPayerError

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


class PayFastPaymentData(BaseModel):
    """
    The complete parameter set of a PayFast checkout redirect.

    Every field the gateway signs is declared here; unknown fields are rejected
    so the signed payload cannot drift from this record.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Merchant details
    merchant_id: str
    merchant_key: str

    # Gateway endpoints
    return_url: str
    cancel_url: str
    notify_url: str

    # Buyer details
    name_first: Optional[str] = None
    name_last: Optional[str] = None
    email_address: str

    # Transaction details
    m_payment_id: str
    amount: str
    item_name: str
    item_description: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        """Flat mapping of the parameters sent to (and signed for) the gateway."""
        return self.model_dump(exclude_none=True)


class PaymentSession(BaseModel):
    """Correlates a booking deposit with one gateway checkout. Never persisted."""

    model_config = ConfigDict(frozen=True)

    redirect_url: str
    signature: str
    m_payment_id: str


def format_amount(amount) -> str:
    """
    Format an amount the way the gateway expects it.

    Raises:
        InvalidAmountError: If the amount is not a positive number
    """
    try:
        value = Decimal(str(amount)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Amount {amount!r} is not a number")
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount}")
    return f"{value:.2f}"


class PayFastClient:
    """Builds signed PayFast checkout URLs. Holds configuration only."""

    def __init__(
        self,
        merchant_id: str | None = None,
        merchant_key: str | None = None,
        passphrase: str | None = None,
        base_url: str | None = None,
        return_url: str | None = None,
        cancel_url: str | None = None,
        notify_url: str | None = None,
    ):
        self.merchant_id = merchant_id if merchant_id is not None else settings.PAYFAST_MERCHANT_ID
        self.merchant_key = merchant_key if merchant_key is not None else settings.PAYFAST_MERCHANT_KEY
        self.passphrase = passphrase if passphrase is not None else settings.PAYFAST_PASSPHRASE
        self.base_url = base_url or settings.payfast_base_url
        self.return_url = return_url or settings.PAYFAST_RETURN_URL
        self.cancel_url = cancel_url or settings.PAYFAST_CANCEL_URL
        self.notify_url = notify_url or settings.PAYFAST_NOTIFY_URL

    def build_payment_data(
        self,
        amount,
        item_name: str,
        email_address: str | None,
        m_payment_id: str,
        name_first: str | None = None,
        name_last: str | None = None,
        item_description: str | None = None,
    ) -> PayFastPaymentData:
        """
        Assemble the fixed and per-payment parameters.

        Raises:
            InvalidAmountError: amount <= 0
            InvalidPayerError: payer email missing
        """
        formatted_amount = format_amount(amount)

        if not email_address or not email_address.strip():
            raise InvalidPayerError("Payer email address is required")

        return PayFastPaymentData(
            merchant_id=self.merchant_id,
            merchant_key=self.merchant_key,
            return_url=self.return_url,
            cancel_url=self.cancel_url,
            notify_url=self.notify_url,
            name_first=name_first or settings.PAYFAST_PAYER_FIRST_NAME,
            name_last=name_last or settings.PAYFAST_PAYER_LAST_NAME,
            email_address=email_address.strip(),
            m_payment_id=m_payment_id,
            amount=formatted_amount,
            item_name=item_name,
            item_description=item_description or None,
        )

    def build_payment(self, amount, item_name: str, email_address: str | None, m_payment_id: str, **payer) -> PaymentSession:
        """
        Build a ready-to-open checkout URL.

        Returns:
            PaymentSession with base_url?<sorted params>&signature=<hex>
        """
        data = self.build_payment_data(amount, item_name, email_address, m_payment_id, **payer)
        params = data.to_params()

        pf_signature = signature.sign(params, self.passphrase or None)
        # The passphrase is part of the signed string only, never the URL
        query = signature.canonicalize(params)
        redirect_url = f"{self.base_url}?{query}&signature={pf_signature}"

        logger.info(f"Built PayFast checkout for m_payment_id={m_payment_id}, amount={data.amount}")

        return PaymentSession(
            redirect_url=redirect_url,
            signature=pf_signature,
            m_payment_id=m_payment_id,
        )


# Singleton
payfast_client = PayFastClient()
