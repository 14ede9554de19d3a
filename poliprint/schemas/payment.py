# poliprint/schemas/payment.py
import enum

from pydantic import BaseModel, ConfigDict, Field

from poliprint.schemas.common import CamelModel


class PaymentStatusKind(enum.Enum):
    """
    Closed set of outcomes the storefront reacts to.
    Anything the provider sends outside the known statuses is OTHER.
    """

    PAID = "paid"
    FAILED = "failed"
    PROCESSING = "processing"
    OTHER = "other"


_STATUS_KINDS: dict[str, PaymentStatusKind] = {
    "success": PaymentStatusKind.PAID,
    "failure": PaymentStatusKind.FAILED,
    "error": PaymentStatusKind.FAILED,
    "processing": PaymentStatusKind.PROCESSING,
}

# Provider statuses reported as "still in progress" by the status endpoint
IN_PROGRESS_STATUSES = {"processing", "prepared"}


def classify_status(status: str) -> PaymentStatusKind:
    return _STATUS_KINDS.get((status or "").strip().lower(), PaymentStatusKind.OTHER)


class PaymentEvent(BaseModel):
    """
    Decoded webhook payload (provider snake_case field names).

    Immutable; one order can receive several events over time. A numeric
    order_id is read as its decimal string.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    order_id: str = Field(min_length=1)
    status: str
    amount: float | None = None
    currency: str | None = None
    transaction_id: int | str | None = None
    payment_id: int | str | None = None
    action: str | None = None
    description: str | None = None
    sender_phone: str | None = None
    sender_card_mask2: str | None = None
    sender_card_bank: str | None = None

    @property
    def order_reference(self) -> str:
        return self.order_id

    @property
    def kind(self) -> PaymentStatusKind:
        return classify_status(self.status)


class WebhookResponse(CamelModel):
    success: bool = True
    order_id: str
    status: str
    processed: bool
    message: str


# -------- Payment form --------


class PaymentCreateRequest(CamelModel):
    """
    Body of POST /payment/create. amount, description and orderId are
    checked by the service so their absence is a 400, not a 422.
    """

    amount: float | None = None
    currency: str = "UAH"
    description: str | None = None
    order_id: str | None = None
    customer_email: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    product_name: str | None = None
    product_category: str | None = None
    result_url: str | None = None
    server_url: str | None = None


class PaymentForm(CamelModel):
    data: str
    signature: str
    action: str
    form_html: str


class PaymentOrderInfo(CamelModel):
    order_id: str
    amount: float
    currency: str
    description: str


class PaymentCreateResponse(CamelModel):
    success: bool = True
    payment: PaymentForm
    order: PaymentOrderInfo


# -------- Status check --------


class PaymentCheckResult(BaseModel):
    """
    Gateway-level answer to a status request.
    """

    success: bool
    status: str
    amount: float = 0.0
    currency: str = "UAH"
    order_id: str
    transaction_id: int | str | None = None
    payment_id: int | str | None = None
    error: str | None = None


class PaymentStatusInfo(CamelModel):
    status: str
    amount: float
    currency: str
    transaction_id: int | str | None = None
    payment_id: int | str | None = None
    is_paid: bool
    is_failed: bool
    is_processing: bool


class PaymentStatusResponse(CamelModel):
    success: bool
    order_id: str
    payment: PaymentStatusInfo
    error: str | None = None


# -------- Refund --------


class RefundRequest(CamelModel):
    order_id: str | None = None
    amount: float | None = None
    comment: str | None = None


class RefundResult(BaseModel):
    success: bool
    refund_id: int | str | None = None
    error: str | None = None


class RefundInfo(CamelModel):
    order_id: str
    amount: float
    refund_id: int | str | None = None
    comment: str
    processed_at: str


class RefundResponse(CamelModel):
    success: bool = True
    refund: RefundInfo
    message: str
