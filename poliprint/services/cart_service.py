# poliprint/services/cart_service.py
import logging
import re
import threading
import uuid
from collections import OrderedDict

from poliprint.core.errors import StorefrontValidationError
from poliprint.repositories.cart_repo import (
    CartStorage,
    CartStorageFactory,
    CorruptCartDataError,
)
from poliprint.schemas.cart import CartLineItem, CartState

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{8,64}$")


# ---------------------------------------------------------------------------
# Reducer: pure functions, state in -> new state out
# ---------------------------------------------------------------------------


def line_total_for(unit_price: float, quantity: int) -> float:
    return round(unit_price * quantity, 2)


def _with_quantity(line: CartLineItem, quantity: int) -> CartLineItem:
    return line.model_copy(
        update={
            "quantity": quantity,
            "line_total": line_total_for(line.unit_price, quantity),
        }
    )


def _with_items(state: CartState, items: list[CartLineItem]) -> CartState:
    """
    Replace items and recompute derived totals.
    """
    return state.model_copy(
        update={
            "items": items,
            "total_items": sum(it.quantity for it in items),
            "total_price": round(sum(it.line_total for it in items), 2),
        }
    )


def same_configuration(a: CartLineItem, b: CartLineItem) -> bool:
    """
    Two lines are the same purchasable thing only if product and every
    chosen option match. Dict equality ignores key order.
    """
    return a.product_reference == b.product_reference and a.chosen_options == b.chosen_options


def add_item(state: CartState, item: CartLineItem) -> CartState:
    """
    Merge into an identical configuration or append a new line.

    The lower bound on quantity is the caller's job.
    """
    items: list[CartLineItem] = []
    merged = False

    for line in state.items:
        if not merged and same_configuration(line, item):
            items.append(_with_quantity(line, line.quantity + item.quantity))
            merged = True
        else:
            items.append(line)

    if not merged:
        # Line ids address update/remove, so they must stay unique
        if any(line.id == item.id for line in items):
            item = item.model_copy(update={"id": uuid.uuid4().hex})
        items.append(_with_quantity(item, item.quantity))

    return _with_items(state, items)


def update_quantity(state: CartState, line_id: str, quantity: int) -> CartState:
    """
    Set quantity to max(0, quantity); a line at 0 is dropped.
    """
    quantity = max(0, quantity)
    items: list[CartLineItem] = []

    for line in state.items:
        if line.id == line_id:
            if quantity == 0:
                continue
            line = _with_quantity(line, quantity)
        items.append(line)

    return _with_items(state, items)


def remove_item(state: CartState, line_id: str) -> CartState:
    return _with_items(state, [line for line in state.items if line.id != line_id])


def clear_cart(state: CartState) -> CartState:
    return _with_items(state, [])


def toggle_cart(state: CartState) -> CartState:
    return state.model_copy(update={"is_open": not state.is_open})


def open_cart(state: CartState) -> CartState:
    return state.model_copy(update={"is_open": True})


def close_cart(state: CartState) -> CartState:
    return state.model_copy(update={"is_open": False})


# ---------------------------------------------------------------------------
# Store: reducer + persistence adapter
# ---------------------------------------------------------------------------


class CartStore:
    """
    Cart of one browsing session.

    Responsibilities:
      - apply reducer operations one at a time (per-store lock)
      - flush {items, totalItems, totalPrice} after every business mutation
      - hydrate on construction by replaying stored lines through add_item

    A corrupt stored snapshot is removed and the cart starts empty.
    """

    def __init__(self, storage: CartStorage):
        self._storage = storage
        self._lock = threading.RLock()
        self._state = CartState()
        self._hydrate()

    @property
    def state(self) -> CartState:
        return self._state

    def locked(self):
        """
        Hold the store for a multi-step read-then-mutate (checkout).
        Store operations called while holding it re-enter the same lock.
        """
        return self._lock

    # ---- persistence ----

    def _hydrate(self) -> None:
        try:
            snapshot = self._storage.load()
        except CorruptCartDataError as exc:
            logger.warning(
                "Discarding corrupt cart snapshot for session %s: %s",
                self._storage.session_id,
                exc,
            )
            self._storage.clear()
            return

        if snapshot is None:
            return

        # Replay instead of overwrite: lines sharing product+options coalesce.
        state = CartState()
        for line in snapshot.items:
            state = add_item(state, line)
        self._state = state
        self._storage.save(state.snapshot())

    def _apply(self, reducer, *args, persist: bool = True) -> CartState:
        with self._lock:
            self._state = reducer(self._state, *args)
            if persist:
                self._storage.save(self._state.snapshot())
            return self._state

    # ---- business operations ----

    def add_item(self, item: CartLineItem) -> CartState:
        return self._apply(add_item, item)

    def update_quantity(self, line_id: str, quantity: int) -> CartState:
        return self._apply(update_quantity, line_id, quantity)

    def remove_item(self, line_id: str) -> CartState:
        return self._apply(remove_item, line_id)

    def clear_cart(self) -> CartState:
        return self._apply(clear_cart)

    # ---- drawer visibility (not persisted) ----

    def toggle_cart(self) -> CartState:
        return self._apply(toggle_cart, persist=False)

    def open_cart(self) -> CartState:
        return self._apply(open_cart, persist=False)

    def close_cart(self) -> CartState:
        return self._apply(close_cart, persist=False)


class CartRegistry:
    """
    Hands out one CartStore per session id.

    Stores are cached (bounded, least-recently-used eviction); an evicted
    store is rebuilt from durable storage on next access.
    """

    def __init__(self, storage_factory: CartStorageFactory, max_sessions: int = 10_000):
        self._storage_factory = storage_factory
        self._max_sessions = max_sessions
        self._stores: OrderedDict[str, CartStore] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def validate_session_id(session_id: str | None) -> str:
        session_id = (session_id or "").strip()
        if not SESSION_ID_PATTERN.match(session_id):
            raise StorefrontValidationError(
                "X-Cart-Session header must be 8-64 characters of [A-Za-z0-9_-]",
                error="Invalid cart session",
            )
        return session_id

    def get(self, session_id: str | None) -> CartStore:
        session_id = self.validate_session_id(session_id)
        with self._lock:
            store = self._stores.get(session_id)
            if store is None:
                store = CartStore(self._storage_factory(session_id))
                self._stores[session_id] = store
                while len(self._stores) > self._max_sessions:
                    self._stores.popitem(last=False)
            else:
                self._stores.move_to_end(session_id)
            return store

    def reset(self) -> None:
        with self._lock:
            self._stores.clear()
