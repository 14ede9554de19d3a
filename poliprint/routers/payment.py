# poliprint/routers/payment.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Form, Query
from sqlmodel import Session

from poliprint.core.auth import require_admin
from poliprint.core.config import get_settings
from poliprint.core.errors import StorefrontValidationError
from poliprint.core.payment_signature import verify_webhook
from poliprint.database import get_session
from poliprint.repositories.order_repo import OrderRepository
from poliprint.schemas.payment import (
    IN_PROGRESS_STATUSES,
    PaymentCreateRequest,
    PaymentCreateResponse,
    PaymentOrderInfo,
    PaymentStatusInfo,
    PaymentStatusKind,
    PaymentStatusResponse,
    RefundInfo,
    RefundRequest,
    RefundResponse,
    WebhookResponse,
    classify_status,
)
from poliprint.services.notification_service import OrderNotifier
from poliprint.services.order_service import OrderService
from poliprint.services.payment_gateway import (
    PaymentGateway,
    build_checkout_form,
    get_payment_gateway,
    validate_refund_request,
)
from poliprint.services.payment_service import PaymentProcessor

router = APIRouter(prefix="/payment", tags=["Payment"])

logger = logging.getLogger(__name__)

order_service = OrderService(OrderRepository(), OrderNotifier())
processor = PaymentProcessor(order_service)
gateway = get_payment_gateway()


def get_gateway() -> PaymentGateway:
    return gateway


@router.post("/create", response_model=PaymentCreateResponse)
def create_payment(payload: PaymentCreateRequest):
    """
    Signed LiqPay checkout form for an arbitrary amount.

    Checkout uses the same builder; this endpoint serves custom quotes
    that are paid without a cart.
    """
    form = build_checkout_form(payload)
    return PaymentCreateResponse(
        payment=form,
        order=PaymentOrderInfo(
            order_id=payload.order_id,
            amount=payload.amount,
            currency=payload.currency,
            description=payload.description,
        ),
    )


@router.post("/webhook", response_model=WebhookResponse)
def payment_webhook(
    data: str | None = Form(default=None),
    signature: str | None = Form(default=None),
    session: Session = Depends(get_session),
):
    """
    LiqPay server-to-server callback.

    - 400 when data or signature is missing, or the payload is unreadable.
    - 403 when the signature does not match.
    - 200 otherwise; `processed` tells whether the order was updated.
    """
    if not data or not signature:
        raise StorefrontValidationError(
            "data and signature are required", error="Missing webhook data"
        )

    event = verify_webhook(data, signature, get_settings().LIQPAY_PRIVATE_KEY)
    logger.info(
        "Payment webhook received: order=%s status=%s amount=%s transaction=%s",
        event.order_reference,
        event.status,
        event.amount,
        event.transaction_id,
    )

    result = processor.process(session, event)
    return WebhookResponse(
        order_id=event.order_reference,
        status=event.status,
        processed=result.processed,
        message=result.message,
    )


@router.get("/status", response_model=PaymentStatusResponse)
def payment_status(
    order_id: str | None = Query(default=None, alias="orderId"),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Ask the provider about the payment of an order.
    """
    if not order_id:
        raise StorefrontValidationError("Order ID is required", error="Missing order ID")

    result = gateway.check_status(order_id)
    kind = classify_status(result.status)
    return PaymentStatusResponse(
        success=result.success,
        order_id=order_id,
        payment=PaymentStatusInfo(
            status=result.status,
            amount=result.amount,
            currency=result.currency,
            transaction_id=result.transaction_id,
            payment_id=result.payment_id,
            is_paid=kind is PaymentStatusKind.PAID,
            is_failed=kind is PaymentStatusKind.FAILED,
            is_processing=result.status in IN_PROGRESS_STATUSES,
        ),
        error=result.error,
    )


@router.post(
    "/refund",
    response_model=RefundResponse,
    dependencies=[Depends(require_admin)],
)
def refund_payment(
    payload: RefundRequest,
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Refund a payment (admin only). A storefront order with the same
    reference is moved to 'refunded'.
    """
    payload = validate_refund_request(payload)
    comment = payload.comment or "Refund processed"

    result = gateway.refund(payload.order_id, payload.amount, comment)
    if not result.success:
        raise StorefrontValidationError(
            result.error or "Unknown refund error", error="Refund failed"
        )

    order_service.mark_refunded(session, payload.order_id)
    logger.info("Refund %s issued for order %s", result.refund_id, payload.order_id)

    return RefundResponse(
        refund=RefundInfo(
            order_id=payload.order_id,
            amount=payload.amount,
            refund_id=result.refund_id,
            comment=comment,
            processed_at=datetime.now(timezone.utc).isoformat(),
        ),
        message="Refund processed successfully",
    )
