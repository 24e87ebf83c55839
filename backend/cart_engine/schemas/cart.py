from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field

from cart_engine.models.pricing import PricingSnapshot


class CouponError(str, Enum):
    """Reasons a coupon cannot be applied."""
    INVALID_COUPON = "invalid_coupon"
    MINIMUM_ORDER_NOT_MET = "minimum_order_not_met"
    COUPON_ALREADY_APPLIED = "coupon_already_applied"


class CouponApplicationResult(BaseModel):
    """Outcome of applying a coupon, meant for direct display to the customer."""
    success: bool
    message: str
    discount: Optional[float] = None
    error: Optional[CouponError] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Coupon applied! 10% off on orders above ₹500",
                "discount": 50
            }
        }


class AddToCartRequest(BaseModel):
    """Schema for adding a product to cart."""
    id: str
    name: str
    price: float = Field(ge=0)
    image: Optional[str] = None
    category: Optional[str] = None
    quantity: int = 1

    class Config:
        coerce_numbers_to_str = True
        json_schema_extra = {
            "example": {
                "id": "12",
                "name": "Hand-painted Mug",
                "price": 349,
                "image": "images/mug.jpg",
                "category": "Ceramics",
                "quantity": 2
            }
        }


class UpdateCartItemRequest(BaseModel):
    """Schema for updating cart item quantity. Zero or less removes the item."""
    quantity: int

    class Config:
        json_schema_extra = {
            "example": {
                "quantity": 3
            }
        }


class ApplyCouponRequest(BaseModel):
    """Schema for applying a coupon code."""
    code: str = Field(min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "code": "save10"
            }
        }


class CouponResponse(BaseModel):
    """Schema for a coupon available in the catalog."""
    code: str
    type: str
    value: float
    min_order: float
    description: str


class NotificationResponse(BaseModel):
    """Transient message shown to the customer after an action."""
    message: str
    type: str = "info"  # "success", "error", "info"


class CartItemResponse(BaseModel):
    """Schema for cart item response."""
    id: str
    name: str
    price: float
    image: Optional[str] = None
    category: str
    quantity: int
    line_total: float

    class Config:
        from_attributes = True


class CartResponse(BaseModel):
    """Schema for the rendered cart summary."""
    items: List[CartItemResponse]
    item_count: int
    pricing: PricingSnapshot
    applied_coupon: Optional[str] = None
    coupon_description: Optional[str] = None
    free_shipping_remaining: float = 0
    free_shipping_hint: Optional[str] = None
    notification: Optional[NotificationResponse] = None

    class Config:
        from_attributes = True
