"""Coupon model for the static coupon catalog."""

from enum import Enum
from pydantic import BaseModel, Field


class CouponKind(str, Enum):
    """Discount computation mode."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


class Coupon(BaseModel):
    """Immutable catalog entry for a coupon code."""
    code: str
    kind: CouponKind = Field(alias="type")
    value: float = Field(default=0, ge=0)
    min_order: float = Field(default=0, ge=0)
    description: str = ""

    class Config:
        frozen = True
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "code": "SAVE10",
                "type": "percentage",
                "value": 10,
                "min_order": 500,
                "description": "10% off on orders above ₹500"
            }
        }

    def is_eligible(self, subtotal: float) -> bool:
        """Check whether a subtotal meets this coupon's minimum order."""
        return subtotal >= self.min_order
