# poliprint/schemas/cart.py
import uuid
from typing import Any, Literal

from pydantic import ConfigDict, Field

from poliprint.schemas.common import CamelModel

ProductCategory = Literal[
    "canvas",
    "acrylic",
    "business-cards",
    "stickers",
    "packaging",
    "flyers",
    "custom",
]


class ProductReference(CamelModel):
    """
    Identifies the underlying product: catalog category + product id.
    """

    model_config = ConfigDict(frozen=True)

    category: ProductCategory
    product_id: str = Field(min_length=1)


class CartLineItem(CamelModel):
    """
    One configured product + quantity in the cart.

    line_total is always unit_price * quantity; the reducer recomputes it
    on every mutation, so values coming from callers are ignored.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    product_reference: ProductReference
    chosen_options: dict[str, str] = Field(default_factory=dict)
    quantity: int
    unit_price: float = Field(ge=0)
    line_total: float = 0.0

    title: str | None = None
    image: str | None = None
    # size / thickness / material / print run etc.
    details: dict[str, Any] = Field(default_factory=dict)


class CartSnapshot(CamelModel):
    """
    What is written to durable storage under the cart key.
    """

    items: list[CartLineItem] = Field(default_factory=list)
    total_items: int = 0
    total_price: float = 0.0


class CartState(CartSnapshot):
    """
    Full cart view, including the transient drawer flag.
    """

    is_open: bool = False

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot(
            items=self.items,
            total_items=self.total_items,
            total_price=self.total_price,
        )


class CartItemCreate(CamelModel):
    """
    Payload for adding a configured product to the cart.
    """

    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    product_reference: ProductReference
    chosen_options: dict[str, str] = Field(default_factory=dict)
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(ge=0)
    title: str | None = None
    image: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    def to_line_item(self) -> CartLineItem:
        data = self.model_dump(exclude={"id"})
        if self.id:
            data["id"] = self.id
        return CartLineItem(**data)


class CartQuantityUpdate(CamelModel):
    """
    Quantity may be zero or negative: the line is then removed.
    """

    quantity: int
