# poliprint/services/payment_gateway.py
import html
import logging
import zlib
from typing import Protocol

from poliprint.core.config import Settings, get_settings
from poliprint.core.errors import StorefrontValidationError
from poliprint.core.liqpay_client import API_VERSION, LiqPayClient
from poliprint.core.payment_signature import create_signature, encode_data
from poliprint.schemas.payment import (
    PaymentCheckResult,
    PaymentCreateRequest,
    PaymentForm,
    RefundRequest,
    RefundResult,
)

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_CATEGORY = "printing"
CHECKOUT_LANGUAGE = "uk"


class PaymentGateway(Protocol):
    """
    Remote operations on already-created payments.
    """

    def check_status(self, order_id: str) -> PaymentCheckResult: ...

    def refund(self, order_id: str, amount: float, comment: str) -> RefundResult: ...


# ---------------------------------------------------------------------------
# Checkout form (local signing, no network)
# ---------------------------------------------------------------------------


def validate_create_request(payload: PaymentCreateRequest) -> PaymentCreateRequest:
    """
    Raises:
        StorefrontValidationError: missing amount/description/orderId,
            or a non-positive amount.
    """
    if not payload.amount or not payload.description or not payload.order_id:
        raise StorefrontValidationError("amount, description, and orderId are required")
    if payload.amount <= 0:
        raise StorefrontValidationError(
            "Amount must be a positive number", error="Invalid amount"
        )
    return payload


def validate_refund_request(payload: RefundRequest) -> RefundRequest:
    """
    Raises:
        StorefrontValidationError: missing orderId/amount, or a
            non-positive amount.
    """
    if not payload.order_id or not payload.amount:
        raise StorefrontValidationError("orderId and amount are required")
    if payload.amount <= 0:
        raise StorefrontValidationError(
            "Amount must be a positive number", error="Invalid amount"
        )
    return payload


def _render_form(action_url: str, data: str, signature: str) -> str:
    return (
        f'<form method="post" action="{html.escape(action_url)}" accept-charset="utf-8">'
        f'<input type="hidden" name="data" value="{html.escape(data)}" />'
        f'<input type="hidden" name="signature" value="{html.escape(signature)}" />'
        '<input type="submit" value="Оплатити" />'
        "</form>"
    )


def build_checkout_form(
    payload: PaymentCreateRequest,
    settings: Settings | None = None,
) -> PaymentForm:
    """
    Build the signed LiqPay checkout payload and its hidden-field form.

    The customer block is only sent when at least one customer field is set.
    """
    settings = settings or get_settings()
    payload = validate_create_request(payload)
    base_url = settings.PUBLIC_BASE_URL.rstrip("/")

    params: dict = {
        "version": API_VERSION,
        "public_key": settings.LIQPAY_PUBLIC_KEY,
        "action": "pay",
        "amount": payload.amount,
        "currency": payload.currency,
        "description": payload.description,
        "order_id": payload.order_id,
        "language": CHECKOUT_LANGUAGE,
        "result_url": payload.result_url or f"{base_url}/payment/success",
        "server_url": payload.server_url or f"{base_url}{settings.API_V1_STR}/payment/webhook",
        "product_category": payload.product_category or DEFAULT_PRODUCT_CATEGORY,
        "product_description": payload.description,
    }
    if payload.product_name:
        params["product_name"] = payload.product_name

    customer = {
        key: value
        for key, value in (
            ("email", payload.customer_email),
            ("name", payload.customer_name),
            ("phone", payload.customer_phone),
        )
        if value
    }
    if customer:
        params["customer"] = customer

    data = encode_data(params)
    signature = create_signature(data, settings.LIQPAY_PRIVATE_KEY)

    return PaymentForm(
        data=data,
        signature=signature,
        action=settings.LIQPAY_CHECKOUT_URL,
        form_html=_render_form(settings.LIQPAY_CHECKOUT_URL, data, signature),
    )


# ---------------------------------------------------------------------------
# Gateways
# ---------------------------------------------------------------------------


class LiqPayGateway:
    def __init__(self, client: LiqPayClient):
        self.client = client

    def check_status(self, order_id: str) -> PaymentCheckResult:
        result = self.client.request("status", {"order_id": order_id})
        status = str(result.get("status") or "error")
        return PaymentCheckResult(
            success=status == "success",
            status=status,
            amount=result.get("amount") or 0.0,
            currency=result.get("currency") or "UAH",
            order_id=str(result.get("order_id") or order_id),
            transaction_id=result.get("transaction_id"),
            payment_id=result.get("payment_id"),
            error=result.get("err_description"),
        )

    def refund(self, order_id: str, amount: float, comment: str) -> RefundResult:
        result = self.client.request(
            "refund",
            {"order_id": order_id, "amount": amount, "comment": comment},
        )
        success = result.get("status") == "success"
        return RefundResult(
            success=success,
            refund_id=result.get("refund_id"),
            error=None if success else (result.get("err_description") or "Unknown refund error"),
        )


def _stable_id(*parts: object) -> int:
    return zlib.crc32(":".join(str(p) for p in parts).encode("utf-8")) % 1_000_000


class MockPaymentGateway:
    """
    Development stand-in: every payment is reported as settled and every
    refund succeeds. Ids are derived from the inputs, so repeated calls
    answer the same.
    """

    MOCK_AMOUNT = 1000.0

    def check_status(self, order_id: str) -> PaymentCheckResult:
        return PaymentCheckResult(
            success=True,
            status="success",
            amount=self.MOCK_AMOUNT,
            currency="UAH",
            order_id=order_id,
            transaction_id=_stable_id("transaction", order_id),
            payment_id=_stable_id("payment", order_id),
        )

    def refund(self, order_id: str, amount: float, comment: str) -> RefundResult:
        return RefundResult(success=True, refund_id=_stable_id("refund", order_id, amount))


def get_payment_gateway(settings: Settings | None = None) -> PaymentGateway:
    """
    Choose the gateway once, from configuration.
    """
    settings = settings or get_settings()
    if settings.liqpay_enabled:
        return LiqPayGateway(
            LiqPayClient(
                public_key=settings.LIQPAY_PUBLIC_KEY,
                private_key=settings.LIQPAY_PRIVATE_KEY,
                api_url=settings.LIQPAY_API_URL,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            )
        )
    logger.info("LIQPAY_PUBLIC_KEY not configured, using mock payment gateway")
    return MockPaymentGateway()
