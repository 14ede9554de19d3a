# poliprint/services/order_service.py
import logging
import smtplib
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from poliprint.core.config import get_settings
from poliprint.core.errors import (
    InvalidTransitionError,
    NotFoundError,
    StorefrontValidationError,
)
from poliprint.models.order import Order, OrderItem, PaymentTransition
from poliprint.repositories.order_repo import OrderRepository
from poliprint.schemas.delivery import DEFAULT_CARGO_TYPE, DeliveryParameters
from poliprint.schemas.order import (
    CheckoutResponse,
    OrderCreate,
    OrderItemRead,
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
    PaymentTransitionRead,
)
from poliprint.schemas.payment import PaymentCreateRequest, PaymentEvent
from poliprint.services.cart_service import CartStore
from poliprint.services.delivery_service import DeliveryCarrier
from poliprint.services.notification_service import OrderNotifier
from poliprint.services.payment_gateway import build_checkout_form

logger = logging.getLogger(__name__)

# Webhooks arrive in any order: a payment status only replaces a status of
# equal or lower rank. Fulfilment and final states are not ranked and are
# never moved by payment events.
PAYMENT_STATUS_RANK: dict[str, int] = {
    "pending": 0,
    "payment_processing": 1,
    "payment_failed": 1,
    "paid": 2,
}

ADMIN_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"canceled"},
    "payment_processing": {"canceled"},
    "payment_failed": {"canceled"},
    "paid": {"in_production", "canceled"},
    "in_production": {"shipped", "canceled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "canceled": set(),
    "refunded": set(),
}

REFUNDABLE_STATUSES = {"paid", "in_production", "shipped", "delivered"}


def generate_reference() -> str:
    """
    Human-friendly order number, e.g. PP-20261017-3F9A1C2B
    """
    return f"PP-{datetime.now(timezone.utc):%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def supersedes(new_status: str, current_status: str) -> bool:
    """
    True if a payment event mapped to new_status may replace current_status.

    paid is never undone by a late processing/failure event; between
    processing and failure the most recent event wins.
    """
    if new_status == current_status or current_status not in PAYMENT_STATUS_RANK:
        return False
    return PAYMENT_STATUS_RANK[new_status] >= PAYMENT_STATUS_RANK[current_status]


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - create an order from the session cart (checkout)
      - apply payment statuses idempotently, one transition per
        (order_reference, status), notifying only when the order moves
      - admin status transitions and refund bookkeeping
    """

    def __init__(self, order_repo: OrderRepository, notifier: OrderNotifier):
        self.order_repo = order_repo
        self.notifier = notifier

    # -------- Checkout --------

    def checkout(
        self,
        session: Session,
        cart: CartStore,
        carrier: DeliveryCarrier,
        payload: OrderCreate,
    ) -> CheckoutResponse:
        """
        Convert the session cart into an Order.

        Steps:
          1. Error if the cart is empty.
          2. Quote delivery from the shop's city to the recipient city.
          3. Create Order (status='pending') + OrderItem rows; commit.
          4. Clear the cart.
          5. Return the order, the quote and a signed payment form.

        A carrier failure aborts before anything is written. The cart stays
        locked from reading to clearing, so a line added concurrently is
        either ordered or kept.
        """
        with cart.locked():
            return self._checkout_locked(session, cart, carrier, payload)

    def _checkout_locked(
        self,
        session: Session,
        cart: CartStore,
        carrier: DeliveryCarrier,
        payload: OrderCreate,
    ) -> CheckoutResponse:
        state = cart.state
        if not state.items:
            raise StorefrontValidationError("Cart is empty", error="Cart is empty")

        settings = get_settings()
        quote = carrier.calculate(
            DeliveryParameters(
                city_sender=settings.NOVA_POSHTA_SENDER_CITY_REF,
                city_recipient=payload.city_recipient,
                weight=payload.package_weight,
                service_type=payload.service_type,
                cost=state.total_price,
                cargo_type=DEFAULT_CARGO_TYPE,
                seats_amount=1,
            )
        )

        order = Order(
            reference=generate_reference(),
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            customer_phone=payload.customer_phone,
            city_recipient=payload.city_recipient,
            warehouse_ref=payload.warehouse_ref,
            delivery_address=payload.delivery_address,
            service_type=payload.service_type,
            note=payload.note,
            status="pending",
            items_total=state.total_price,
            delivery_cost=quote.total_cost,
            total_amount=round(state.total_price + quote.total_cost, 2),
        )
        order = self.order_repo.create_order(session, order)

        items = self.order_repo.create_items(
            session,
            [
                OrderItem(
                    order_id=order.id,
                    line_id=line.id,
                    category=line.product_reference.category,
                    product_id=line.product_reference.product_id,
                    title=line.title,
                    options=dict(line.chosen_options),
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in state.items
            ],
        )

        session.commit()
        session.refresh(order)
        cart.clear_cart()
        logger.info("Order %s created: %.2f %s", order.reference, order.total_amount, order.currency)

        payment = build_checkout_form(
            PaymentCreateRequest(
                amount=order.total_amount,
                currency=order.currency,
                description=f"PoliPrint order {order.reference}",
                order_id=order.reference,
                customer_email=order.customer_email,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                result_url=payload.result_url,
            )
        )

        return CheckoutResponse(
            order=self._build_order_with_items_dto(order, items, []),
            delivery=quote,
            payment=payment,
        )

    # -------- Payment statuses --------

    def apply_payment_status(
        self,
        session: Session,
        order_reference: str,
        status: str,
        event: PaymentEvent,
    ) -> bool:
        """
        Record a payment status for an order.

        Every new (order_reference, status) pair is written to the ledger.
        The order itself only moves, and the customer is only notified,
        when the status outranks the current one (see supersedes).

        Returns:
            True if this (order_reference, status) pair is new;
            False if it had already been recorded.

        Raises:
            NotFoundError: unknown order reference.
        """
        order = self.order_repo.get_by_reference(session, order_reference)
        if order is None:
            raise NotFoundError(f"Order {order_reference} not found", error="Order not found")

        if self.order_repo.get_transition(session, order_reference, status) is not None:
            logger.info("Payment status %s already applied to order %s", status, order_reference)
            return False

        try:
            self.order_repo.add_transition(
                session,
                PaymentTransition(
                    order_reference=order_reference,
                    status=status,
                    provider_status=event.status,
                    amount=event.amount,
                    currency=event.currency,
                    transaction_id=str(event.transaction_id) if event.transaction_id is not None else None,
                    payment_id=str(event.payment_id) if event.payment_id is not None else None,
                ),
            )

            changed = supersedes(status, order.status)
            if changed:
                order.status = status
                order.updated_at = datetime.now(timezone.utc)
                self.order_repo.update_order(session, order)

            session.commit()
        except IntegrityError:
            # Concurrent delivery of the same event won the race
            session.rollback()
            logger.info("Payment status %s raced for order %s", status, order_reference)
            return False

        session.refresh(order)
        if not changed:
            logger.info(
                "Order %s keeps status %s, late payment status %s recorded only",
                order_reference,
                order.status,
                status,
            )
            return True

        logger.info("Order %s payment status -> %s", order_reference, status)
        self._notify(order, status)
        return True

    def mark_refunded(self, session: Session, order_reference: str) -> Order | None:
        """
        Move a paid order to 'refunded' after the provider confirmed a refund.

        Unknown references are ignored: refunds can target payments made
        outside the storefront. Orders that were never paid keep their status.
        """
        order = self.order_repo.get_by_reference(session, order_reference)
        if order is None:
            logger.info("Refund for unknown order %s, nothing to update", order_reference)
            return None
        if order.status not in REFUNDABLE_STATUSES:
            logger.warning(
                "Refund recorded for order %s in status %s, status kept",
                order_reference,
                order.status,
            )
            return order
        order.status = "refunded"
        order.updated_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        self._notify(order, "refunded")
        return order

    # -------- Queries --------

    def get_order(self, session: Session, reference: str) -> OrderWithItemsRead:
        order = self.order_repo.get_by_reference(session, reference)
        if order is None:
            raise NotFoundError(f"Order {reference} not found", error="Order not found")
        items = self.order_repo.list_items_for_order(session, order.id)
        transitions = self.order_repo.list_transitions(session, order.reference)
        return self._build_order_with_items_dto(order, items, transitions)

    def list_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status: str | None = None,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_all(session, skip, limit, status)
        return [OrderRead.model_validate(o, from_attributes=True) for o in orders]

    # -------- Admin operations --------

    def update_status(
        self,
        session: Session,
        reference: str,
        payload: OrderStatusUpdate,
    ) -> OrderRead:
        """
        Admin-only fulfilment transitions (see ADMIN_TRANSITIONS).

        Payment statuses are owned by the webhook and cannot be set here.
        """
        order = self.order_repo.get_by_reference(session, reference)
        if order is None:
            raise NotFoundError(f"Order {reference} not found", error="Order not found")

        current = order.status
        new = payload.status

        if current == new:
            return OrderRead.model_validate(order, from_attributes=True)

        if new not in ADMIN_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(f"Invalid status transition: {current} -> {new}")

        order.status = new
        order.updated_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        return OrderRead.model_validate(order, from_attributes=True)

    def _notify(self, order: Order, status: str) -> None:
        # The status is already committed; a mail outage must not undo it
        try:
            self.notifier.notify_status(order, status)
        except (smtplib.SMTPException, OSError):
            logger.exception("Could not notify customer about order %s (%s)", order.reference, status)

    # -------- Helper DTO builder --------

    def _build_order_with_items_dto(
        self,
        order: Order,
        items: list[OrderItem],
        transitions: list[PaymentTransition],
    ) -> OrderWithItemsRead:
        return OrderWithItemsRead(
            **OrderRead.model_validate(order, from_attributes=True).model_dump(),
            items=[OrderItemRead.model_validate(it, from_attributes=True) for it in items],
            payments=[
                PaymentTransitionRead.model_validate(t, from_attributes=True)
                for t in transitions
            ],
        )
