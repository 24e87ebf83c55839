from datetime import datetime
from enum import Enum
from typing import Tuple, Optional
from pydantic import BaseModel, Field

from cart_engine.utils.helpers import get_current_timestamp


class Product(BaseModel):
    """Product as selected by the customer, before it becomes a line item."""
    id: str
    name: str
    price: float = Field(ge=0)
    image: Optional[str] = None
    category: Optional[str] = None

    class Config:
        frozen = True
        coerce_numbers_to_str = True
        json_schema_extra = {
            "example": {
                "id": "12",
                "name": "Hand-painted Mug",
                "price": 349,
                "image": "images/mug.jpg",
                "category": "Ceramics"
            }
        }


class LineItem(BaseModel):
    """One product entry in the cart with an accumulated quantity."""
    id: str
    name: str
    price: float = Field(ge=0)
    image: Optional[str] = None
    category: Optional[str] = None
    quantity: int = Field(ge=1)
    added_at: datetime = Field(default_factory=get_current_timestamp, alias="addedAt")

    class Config:
        frozen = True
        populate_by_name = True
        coerce_numbers_to_str = True

    @property
    def line_total(self) -> float:
        """Price of all units of this item."""
        return self.price * self.quantity

    @classmethod
    def from_product(cls, product: Product, quantity: int, added_at: datetime) -> "LineItem":
        """Create a new line item for a product."""
        return cls(
            id=product.id,
            name=product.name,
            price=product.price,
            image=product.image,
            category=product.category,
            quantity=quantity,
            added_at=added_at
        )


class CartState(BaseModel):
    """Immutable snapshot of the cart: ordered items plus the applied coupon."""
    items: Tuple[LineItem, ...] = ()
    applied_coupon_code: Optional[str] = None

    class Config:
        frozen = True

    def find_item(self, product_id: str) -> Optional[LineItem]:
        """Get the line item for a product, if present."""
        for item in self.items:
            if item.id == product_id:
                return item
        return None

    @property
    def item_count(self) -> int:
        """Sum of all item quantities."""
        return sum(item.quantity for item in self.items)

    @property
    def subtotal(self) -> float:
        """Sum of price times quantity over all items."""
        return sum(item.line_total for item in self.items)


class CartChangeReason(str, Enum):
    """What triggered a cart change event."""
    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    QUANTITY_UPDATED = "quantity_updated"
    COUPON_APPLIED = "coupon_applied"
    COUPON_REMOVED = "coupon_removed"
    CLEARED = "cleared"
    SYNCED = "synced"


class CartChangedEvent(BaseModel):
    """Emitted after every persisted cart mutation."""
    snapshot: CartState
    reason: CartChangeReason
    item: Optional[LineItem] = None  # Item added or removed, when there is one

    class Config:
        frozen = True
