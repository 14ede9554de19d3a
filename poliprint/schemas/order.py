# poliprint/schemas/order.py
import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

from poliprint.schemas.delivery import DEFAULT_SERVICE_TYPE, DeliveryQuote, ServiceType
from poliprint.schemas.payment import PaymentForm

OrderStatus = Literal[
    "pending",
    "payment_processing",
    "paid",
    "payment_failed",
    "in_production",
    "shipped",
    "delivered",
    "canceled",
    "refunded",
]


class OrderCreate(SQLModel):
    """
    Checkout payload. Items come from the caller's cart session.

    User provides:
      - contact data (name, phone, optional email for notifications)
      - Nova Poshta destination: recipient city ref + warehouse ref for
        *Warehouse service types, street address for *Doors types
      - estimated package weight (kg) for the delivery quote

    Backend derives:
      - reference, status = 'pending'
      - items_total from the cart, delivery_cost from the carrier
    """

    model_config = ConfigDict(extra="forbid")

    customer_name: str
    customer_phone: str
    customer_email: str | None = None
    city_recipient: str
    warehouse_ref: str | None = None
    delivery_address: str | None = None
    service_type: ServiceType = DEFAULT_SERVICE_TYPE
    package_weight: float = Field(default=1.0, gt=0)
    note: str | None = None
    result_url: str | None = None

    @field_validator("customer_name", "customer_phone", "city_recipient")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("customer_email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        if "@" not in v:
            raise ValueError("invalid email address")
        return v

    @field_validator("warehouse_ref", "delivery_address", "note", mode="before")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def destination_matches_service(self) -> "OrderCreate":
        if self.service_type.endswith("Doors"):
            if not self.delivery_address:
                raise ValueError("delivery_address is required for door delivery")
        elif not self.warehouse_ref:
            raise ValueError("warehouse_ref is required for warehouse delivery")
        return self


class OrderItemRead(SQLModel):
    id: uuid.UUID
    line_id: str
    category: str
    product_id: str
    title: str | None
    options: dict[str, Any]
    quantity: int
    unit_price: float
    line_total: float


class PaymentTransitionRead(SQLModel):
    status: str
    provider_status: str
    amount: float | None
    currency: str | None
    transaction_id: str | None
    payment_id: str | None
    created_at: datetime


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    reference: str
    customer_name: str
    customer_email: str | None
    customer_phone: str
    city_recipient: str
    warehouse_ref: str | None
    delivery_address: str | None
    service_type: str
    note: str | None
    status: OrderStatus
    items_total: float
    delivery_cost: float
    total_amount: float
    currency: str
    created_at: datetime
    updated_at: datetime


class OrderWithItemsRead(OrderRead):
    items: list[OrderItemRead]
    payments: list[PaymentTransitionRead] = []


class CheckoutResponse(SQLModel):
    order: OrderWithItemsRead
    delivery: DeliveryQuote
    payment: PaymentForm


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
