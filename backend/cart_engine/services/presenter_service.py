"""
Cart presenter - turns engine state into the cart summary shown to customers.

Listens to cart change events to keep the item-count badge current and to
queue the transient notification for the last add/remove action.
"""

from typing import Optional

from cart_engine.models.cart import CartChangedEvent, CartChangeReason
from cart_engine.schemas.cart import (
    CartItemResponse,
    CartResponse,
    CouponApplicationResult,
    NotificationResponse
)
from cart_engine.services.cart_service import CartService
from cart_engine.services.pricing_service import PricingService
from cart_engine.utils.helpers import format_money

DEFAULT_CATEGORY = "Handmade"


class CartPresenter:
    """Renders a CartService for display and collects user-facing notifications."""

    def __init__(self, cart: CartService):
        self.cart = cart
        self.badge_count = cart.total_item_count()
        self._notification: Optional[NotificationResponse] = None
        self._unsubscribe = cart.subscribe(self.on_cart_changed)

    def close(self) -> None:
        """Stop listening to the cart."""
        self._unsubscribe()

    def on_cart_changed(self, event: CartChangedEvent) -> None:
        """Update the badge and queue a notification for item changes."""
        self.badge_count = event.snapshot.item_count

        if event.item is None:
            return
        if event.reason == CartChangeReason.ITEM_ADDED:
            self._notification = NotificationResponse(
                message=f"{event.item.name} added to cart!",
                type="success"
            )
        elif event.reason == CartChangeReason.ITEM_REMOVED:
            self._notification = NotificationResponse(
                message=f"{event.item.name} removed from cart",
                type="info"
            )

    def pop_notification(self) -> Optional[NotificationResponse]:
        """Get the pending notification, if any, and clear it."""
        notification, self._notification = self._notification, None
        return notification

    @staticmethod
    def coupon_notification(result: CouponApplicationResult) -> NotificationResponse:
        """Notification for the outcome of a coupon application."""
        return NotificationResponse(
            message=result.message,
            type="success" if result.success else "error"
        )

    def render(self, notification: Optional[NotificationResponse] = None) -> CartResponse:
        """Build the cart summary for the current state."""
        pending = self.pop_notification()
        state = self.cart.snapshot()
        pricing = self.cart.pricing()
        config = self.cart.config

        coupon = self.cart.catalog.lookup(state.applied_coupon_code)
        remaining = PricingService.amount_for_free_shipping(pricing.subtotal, config)

        free_shipping_hint = None
        if state.items and remaining > 0:
            free_shipping_hint = (
                f"Add {format_money(remaining, config.CURRENCY_SYMBOL)} more for free shipping!"
            )

        return CartResponse(
            items=[
                CartItemResponse(
                    id=item.id,
                    name=item.name,
                    price=item.price,
                    image=item.image,
                    category=item.category or DEFAULT_CATEGORY,
                    quantity=item.quantity,
                    line_total=item.line_total
                )
                for item in state.items
            ],
            item_count=state.item_count,
            pricing=pricing,
            applied_coupon=state.applied_coupon_code,
            coupon_description=coupon.description if coupon else None,
            free_shipping_remaining=remaining,
            free_shipping_hint=free_shipping_hint,
            notification=notification if notification is not None else pending
        )
