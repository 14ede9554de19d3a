# poliprint/models/order.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(SQLModel, table=True):
    """
    Storefront order created at checkout.

    status lifecycle:
      pending -> payment_processing / paid / payment_failed   (webhook,
                                                      paid is never undone)
      paid -> in_production -> shipped -> delivered          (admin)
      any non-final -> canceled, paid..delivered -> refunded
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    # Public identifier; sent to LiqPay as order_id
    reference: str = Field(
        unique=True,
        index=True,
        max_length=64,
    )

    customer_name: str
    customer_email: str | None = None
    customer_phone: str

    # Nova Poshta destination
    city_recipient: str
    warehouse_ref: str | None = None
    delivery_address: str | None = None
    service_type: str = Field(default="WarehouseWarehouse")

    note: str | None = None

    status: str = Field(
        default="pending",
        index=True,
    )

    items_total: float = Field(ge=0)
    delivery_cost: float = Field(default=0.0, ge=0)
    total_amount: float = Field(ge=0)
    currency: str = Field(default="UAH", max_length=3)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class OrderItem(SQLModel, table=True):
    """
    Cart line frozen into the order.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    line_id: str
    category: str
    product_id: str
    title: str | None = None
    options: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)
    line_total: float = Field(ge=0)


class PaymentTransition(SQLModel, table=True):
    """
    Ledger of payment statuses applied to orders.

    One row per (order_reference, status): a redelivered webhook hits the
    unique constraint and is recognised as already applied.
    """

    __tablename__ = "payment_transitions"
    __table_args__ = (
        UniqueConstraint("order_reference", "status", name="uq_payment_transition"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    order_reference: str = Field(index=True, max_length=64)

    # Order status this event moved to (paid / payment_failed / ...)
    status: str
    # Raw provider status (success / failure / error / ...)
    provider_status: str

    amount: float | None = None
    currency: str | None = None
    transaction_id: str | None = None
    payment_id: str | None = None

    created_at: datetime = Field(default_factory=_utcnow)
