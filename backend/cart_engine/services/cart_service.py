"""
Cart service - the state container for one shopper's cart.

Owns the ordered line items and the single applied coupon code. Every
mutation builds the new state, writes it to the durable store and only then
replaces the in-memory copy and notifies listeners, so a listener that reads
the store after being notified sees the new state. A failed write leaves the
in-memory cart unchanged and restores the previously stored coupon. Mutations
hold a per-instance lock so that callers on worker threads do not interleave.
"""

import functools
import json
import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from cart_engine.core.config import Settings, settings as default_settings
from cart_engine.core.exceptions import StorageWriteError
from cart_engine.core.storage import KeyValueStore
from cart_engine.models.cart import (
    CartChangedEvent,
    CartChangeReason,
    CartState,
    LineItem,
    Product
)
from cart_engine.models.pricing import PricingSnapshot
from cart_engine.schemas.cart import CouponApplicationResult, CouponError
from cart_engine.services.coupon_catalog import CouponCatalog
from cart_engine.services.pricing_service import PricingService
from cart_engine.utils.helpers import format_money, get_current_timestamp, normalize_coupon_code

logger = logging.getLogger(__name__)

CartListener = Callable[[CartChangedEvent], None]


def synchronized(method):
    """Run a cart method while holding the instance lock."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class CartService:
    """Cart state container with durable persistence and change notifications."""

    def __init__(
        self,
        store: KeyValueStore,
        catalog: Optional[CouponCatalog] = None,
        config: Settings = default_settings,
        clock: Callable[[], datetime] = get_current_timestamp
    ):
        self.store = store
        self.catalog = catalog if catalog is not None else CouponCatalog.default()
        self.config = config
        self._clock = clock
        self._listeners: List[CartListener] = []
        self._lock = threading.RLock()
        self._state = CartState(
            items=self._load_items(),
            applied_coupon_code=self._load_coupon_code()
        )

    def snapshot(self) -> CartState:
        """Get an immutable copy of the current cart state."""
        return self._state

    def total_item_count(self) -> int:
        """Sum of all item quantities."""
        return self._state.item_count

    def subtotal(self) -> float:
        """Sum of price times quantity over all items."""
        return self._state.subtotal

    def pricing(self) -> PricingSnapshot:
        """Price breakdown for the current cart, recomputed on every call."""
        return PricingService.calculate_pricing(self._state, self.catalog, self.config)

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """
        Register a listener for cart change events.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @synchronized
    def add_item(self, product: Product, quantity: int = 1) -> bool:
        """
        Add a product to the cart.

        If the product is already in the cart its quantity is increased,
        otherwise a new line item is appended. Quantities below 1 are ignored.

        Returns:
            True if the cart changed
        """
        if quantity < 1:
            return False

        items = list(self._state.items)
        added = None
        for index, item in enumerate(items):
            if item.id == product.id:
                added = item.model_copy(update={"quantity": item.quantity + quantity})
                items[index] = added
                break

        if added is None:
            added = LineItem.from_product(product, quantity, self._clock())
            items.append(added)

        self._commit(
            self._state.model_copy(update={"items": tuple(items)}),
            CartChangeReason.ITEM_ADDED,
            item=added
        )
        logger.info(f"Added {quantity}x {product.id} to cart (now {added.quantity})")
        return True

    @synchronized
    def remove_item(self, product_id: str) -> bool:
        """
        Remove an item from the cart.

        Returns:
            True if an item was removed
        """
        removed = self._state.find_item(product_id)
        if removed is None:
            return False

        items = tuple(item for item in self._state.items if item.id != product_id)
        self._commit(
            self._state.model_copy(update={"items": items}),
            CartChangeReason.ITEM_REMOVED,
            item=removed
        )
        logger.info(f"Removed {product_id} from cart")
        return True

    @synchronized
    def set_quantity(self, product_id: str, quantity: int) -> bool:
        """
        Set the quantity of an item. Zero or less removes the item.

        Returns:
            True if the item exists in the cart
        """
        existing = self._state.find_item(product_id)
        if existing is None:
            return False

        if quantity <= 0:
            return self.remove_item(product_id)

        updated = existing.model_copy(update={"quantity": quantity})
        items = tuple(updated if item.id == product_id else item for item in self._state.items)
        self._commit(
            self._state.model_copy(update={"items": items}),
            CartChangeReason.QUANTITY_UPDATED,
            item=updated
        )
        logger.info(f"Set quantity of {product_id} to {quantity}")
        return True

    @synchronized
    def clear(self) -> None:
        """Empty the cart and drop the applied coupon in one persisted step."""
        self._commit(CartState(), CartChangeReason.CLEARED)
        logger.info("Cleared cart")

    @synchronized
    def apply_coupon(self, code: str) -> CouponApplicationResult:
        """
        Apply a coupon code, replacing any previously applied coupon.

        Validation order: code must exist in the catalog, the current subtotal
        must meet the coupon's minimum order, and the code must differ from
        the one already applied.
        """
        code = normalize_coupon_code(code)
        coupon = self.catalog.lookup(code)
        subtotal = self.subtotal()

        if not coupon:
            logger.info(f"Rejected unknown coupon '{code}'")
            return CouponApplicationResult(
                success=False,
                message="Invalid coupon code",
                error=CouponError.INVALID_COUPON
            )

        if not coupon.is_eligible(subtotal):
            logger.info(f"Rejected coupon {code}: subtotal {subtotal} below {coupon.min_order}")
            return CouponApplicationResult(
                success=False,
                message=f"Minimum order of {format_money(coupon.min_order, self.config.CURRENCY_SYMBOL)} required for this coupon",
                error=CouponError.MINIMUM_ORDER_NOT_MET
            )

        if self._state.applied_coupon_code == code:
            return CouponApplicationResult(
                success=False,
                message="Coupon already applied",
                error=CouponError.COUPON_ALREADY_APPLIED
            )

        self._commit(
            self._state.model_copy(update={"applied_coupon_code": code}),
            CartChangeReason.COUPON_APPLIED
        )
        logger.info(f"Applied coupon {code}")

        return CouponApplicationResult(
            success=True,
            message=f"Coupon applied! {coupon.description}",
            discount=PricingService.calculate_discount(subtotal, coupon, self.config)
        )

    @synchronized
    def remove_coupon(self) -> None:
        """Drop the applied coupon. Safe to call when none is applied."""
        self._commit(
            self._state.model_copy(update={"applied_coupon_code": None}),
            CartChangeReason.COUPON_REMOVED
        )

    @synchronized
    def reload(self) -> CartState:
        """
        Re-read the items from the durable store and notify listeners.

        The applied coupon is kept as-is; it is only read from the store
        when the service is created.
        """
        items = self._load_items()
        self._state = self._state.model_copy(update={"items": items})
        logger.info(f"Reloaded cart from storage ({len(items)} items)")
        self._emit(CartChangedEvent(snapshot=self._state, reason=CartChangeReason.SYNCED))
        return self._state

    def _commit(
        self,
        state: CartState,
        reason: CartChangeReason,
        item: Optional[LineItem] = None
    ) -> None:
        self._persist(state)
        self._state = state
        self._emit(CartChangedEvent(snapshot=state, reason=reason, item=item))

    def _persist(self, state: CartState) -> None:
        cart_key = self.config.CART_STORAGE_KEY
        coupon_key = self.config.COUPON_STORAGE_KEY

        # The cart key goes last: other instances reload on it.
        previous_coupon = self.store.get(coupon_key)
        self._write_or_remove(coupon_key, state.applied_coupon_code)

        try:
            if not state.items and state.applied_coupon_code is None:
                self.store.remove(cart_key)
            else:
                self.store.set(cart_key, serialize_items(state.items))
        except StorageWriteError:
            self._restore_coupon(previous_coupon)
            raise

    def _restore_coupon(self, previous: Optional[str]) -> None:
        try:
            self._write_or_remove(self.config.COUPON_STORAGE_KEY, previous)
        except StorageWriteError as e:
            logger.error(f"Could not restore stored coupon after failed cart write: {str(e)}")

    def _write_or_remove(self, key: str, value: Optional[str]) -> None:
        if value:
            self.store.set(key, value)
        else:
            self.store.remove(key)

    def _emit(self, event: CartChangedEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _load_items(self) -> Tuple[LineItem, ...]:
        return deserialize_items(self.store.get(self.config.CART_STORAGE_KEY))

    def _load_coupon_code(self) -> Optional[str]:
        saved = self.store.get(self.config.COUPON_STORAGE_KEY)
        if saved and saved in self.catalog:
            return normalize_coupon_code(saved)
        return None


def serialize_items(items: Tuple[LineItem, ...]) -> str:
    """Serialize line items to the JSON list stored under the cart key."""
    return json.dumps([item.model_dump(mode="json", by_alias=True) for item in items])


def deserialize_items(raw: Optional[str]) -> Tuple[LineItem, ...]:
    """
    Parse the stored JSON list of line items.

    Missing or unreadable data yields an empty cart. Malformed records are
    skipped and repeated ids are merged by adding their quantities.
    """
    if not raw:
        return ()

    try:
        records = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Discarding unreadable cart data: {str(e)}")
        return ()

    if not isinstance(records, list):
        logger.warning("Discarding cart data that is not a list of items")
        return ()

    items: List[LineItem] = []
    for record in records:
        try:
            item = LineItem.model_validate(record)
        except ValidationError as e:
            logger.warning(f"Skipping invalid cart item: {str(e)}")
            continue

        for index, existing in enumerate(items):
            if existing.id == item.id:
                items[index] = existing.model_copy(
                    update={"quantity": existing.quantity + item.quantity}
                )
                break
        else:
            items.append(item)

    return tuple(items)
