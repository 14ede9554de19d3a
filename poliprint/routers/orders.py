# poliprint/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from poliprint.core.auth import require_admin
from poliprint.database import get_session
from poliprint.repositories.order_repo import OrderRepository
from poliprint.routers.cart import get_cart_store
from poliprint.routers.delivery import get_carrier
from poliprint.schemas.order import (
    CheckoutResponse,
    OrderCreate,
    OrderRead,
    OrderStatus,
    OrderStatusUpdate,
    OrderWithItemsRead,
)
from poliprint.services.cart_service import CartStore
from poliprint.services.delivery_service import DeliveryCarrier
from poliprint.services.notification_service import OrderNotifier
from poliprint.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
service = OrderService(order_repo, OrderNotifier())


# -------- Storefront endpoints --------


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
)
def checkout(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    cart: CartStore = Depends(get_cart_store),
    carrier: DeliveryCarrier = Depends(get_carrier),
):
    """
    Create an order from the caller's cart (X-Cart-Session).

    Returns the order, its delivery quote and a signed LiqPay form the
    storefront submits to start payment. The cart is emptied on success.
    """
    return service.checkout(session, cart, carrier, payload)


@router.get(
    "/{reference}",
    response_model=OrderWithItemsRead,
)
def get_order(
    reference: str,
    session: Session = Depends(get_session),
):
    """
    Order with items and payment history, by its public reference.
    """
    return service.get_order(session, reference)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[OrderRead],
    dependencies=[Depends(require_admin)],
)
def list_orders(
    session: Session = Depends(get_session),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    status: OrderStatus | None = None,
):
    """
    List all orders, newest first (admin only).
    """
    return service.list_orders(session, skip, limit, status)


@router.patch(
    "/{reference}/status",
    response_model=OrderRead,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    reference: str,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Fulfilment transitions (admin only).

      pending / payment_processing / payment_failed -> canceled

      paid          -> in_production, canceled

      in_production -> shipped, canceled

      shipped       -> delivered

    """
    return service.update_status(session, reference, payload)
