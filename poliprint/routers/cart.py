# poliprint/routers/cart.py
from fastapi import APIRouter, Depends, Header

from poliprint.repositories.cart_repo import build_cart_storage_factory
from poliprint.schemas.cart import CartItemCreate, CartQuantityUpdate, CartState
from poliprint.services.cart_service import CartRegistry, CartStore

router = APIRouter(prefix="/cart", tags=["Cart"])

registry = CartRegistry(build_cart_storage_factory())


def get_cart_store(x_cart_session: str | None = Header(default=None)) -> CartStore:
    """
    Resolve the cart of the calling browser session.

    The storefront generates a random session id once and sends it in the
    X-Cart-Session header on every cart/checkout call.
    """
    return registry.get(x_cart_session)


@router.get("", response_model=CartState)
def get_cart(store: CartStore = Depends(get_cart_store)):
    """
    Current cart with derived totals.
    """
    return store.state


@router.post("/items", response_model=CartState)
def add_cart_item(
    payload: CartItemCreate,
    store: CartStore = Depends(get_cart_store),
):
    """
    Add a configured product.

    Identical product + options fold into the existing line.
    """
    return store.add_item(payload.to_line_item())


@router.patch("/items/{line_id}", response_model=CartState)
def update_cart_item(
    line_id: str,
    payload: CartQuantityUpdate,
    store: CartStore = Depends(get_cart_store),
):
    """
    Set the quantity of a line; zero or less removes it.
    """
    return store.update_quantity(line_id, payload.quantity)


@router.delete("/items/{line_id}", response_model=CartState)
def remove_cart_item(line_id: str, store: CartStore = Depends(get_cart_store)):
    return store.remove_item(line_id)


@router.delete("", response_model=CartState)
def clear_cart(store: CartStore = Depends(get_cart_store)):
    return store.clear_cart()


# -------- Drawer visibility --------


@router.post("/toggle", response_model=CartState)
def toggle_cart(store: CartStore = Depends(get_cart_store)):
    return store.toggle_cart()


@router.post("/open", response_model=CartState)
def open_cart(store: CartStore = Depends(get_cart_store)):
    return store.open_cart()


@router.post("/close", response_model=CartState)
def close_cart(store: CartStore = Depends(get_cart_store)):
    return store.close_cart()
