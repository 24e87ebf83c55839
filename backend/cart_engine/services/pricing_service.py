"""
Pricing service - subtotal, shipping, coupon discount and total for a cart.

All methods are pure functions of a cart snapshot, the coupon catalog and the
shipping settings. Nothing here raises: coupon eligibility problems are
reported by the cart service when the coupon is applied, and a recorded
coupon whose minimum order is no longer met simply discounts nothing.
"""

import math
from typing import Optional

from cart_engine.core.config import Settings, settings as default_settings
from cart_engine.models.cart import CartState
from cart_engine.models.coupon import Coupon, CouponKind
from cart_engine.models.pricing import PricingSnapshot
from cart_engine.services.coupon_catalog import CouponCatalog


class PricingService:
    """Price computation for cart snapshots."""

    @staticmethod
    def calculate_subtotal(state: CartState) -> float:
        """Sum of price times quantity over all items."""
        return state.subtotal

    @staticmethod
    def calculate_shipping(
        subtotal: float,
        coupon: Optional[Coupon],
        config: Settings = default_settings
    ) -> float:
        """
        Calculate the shipping cost.

        Shipping is free once the subtotal reaches the free-shipping threshold
        or when a free-shipping coupon is applied, otherwise the flat rate.
        """
        if coupon and coupon.kind == CouponKind.FREE_SHIPPING:
            return 0
        if subtotal >= config.FREE_SHIPPING_THRESHOLD:
            return 0
        return config.SHIPPING_RATE

    @staticmethod
    def calculate_discount(
        subtotal: float,
        coupon: Optional[Coupon],
        config: Settings = default_settings
    ) -> float:
        """
        Calculate the coupon discount for a subtotal.

        Args:
            subtotal: Cart subtotal
            coupon: Applied coupon, if any
            config: Settings providing the shipping rate

        Returns:
            Discount amount, never more than the subtotal
        """
        if not coupon or not coupon.is_eligible(subtotal):
            return 0

        if coupon.kind == CouponKind.PERCENTAGE:
            return math.floor(subtotal * coupon.value / 100)
        if coupon.kind == CouponKind.FIXED:
            return min(coupon.value, subtotal)
        if coupon.kind == CouponKind.FREE_SHIPPING:
            # Waived shipping is reported as a discount line
            return min(config.SHIPPING_RATE, subtotal)
        return 0

    @staticmethod
    def amount_for_free_shipping(subtotal: float, config: Settings = default_settings) -> float:
        """Amount still needed to reach the free-shipping threshold (0 once reached)."""
        return max(config.FREE_SHIPPING_THRESHOLD - subtotal, 0)

    @staticmethod
    def calculate_pricing(
        state: CartState,
        catalog: CouponCatalog,
        config: Settings = default_settings
    ) -> PricingSnapshot:
        """Compute the full price breakdown for a cart snapshot."""
        subtotal = PricingService.calculate_subtotal(state)
        coupon = catalog.lookup(state.applied_coupon_code)

        shipping_cost = PricingService.calculate_shipping(subtotal, coupon, config)
        discount = PricingService.calculate_discount(subtotal, coupon, config)

        return PricingSnapshot(
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            discount=discount,
            total=subtotal + shipping_cost - discount
        )
