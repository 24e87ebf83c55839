"""
Sync service - keeps several cart instances over one durable store consistent.

Each instance listens for storage events on the cart key written by other
instances and reloads its items when one arrives. Consistency is eventual and
last-writer-wins: whatever was written to the store last is what every
instance converges to, concurrent additions are not merged.
"""

import logging
from typing import Callable, Optional

from cart_engine.core.events import StorageEvent, StorageEventBus
from cart_engine.services.cart_service import CartService

logger = logging.getLogger(__name__)


class SyncService:
    """Reloads a cart instance whenever another instance writes the cart key."""

    def __init__(self, cart: CartService, bus: Optional[StorageEventBus] = None):
        self.cart = cart
        self.bus = bus if bus is not None else cart.store.bus
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Subscribe to storage events for the cart key. Calling twice is harmless."""
        if self.is_running:
            return
        self._unsubscribe = self.bus.subscribe(
            self.cart.config.CART_STORAGE_KEY,
            self.handle_storage_event,
            source=self.cart.store.source
        )
        logger.info(f"Cart sync started for instance {self.cart.store.source}")

    def stop(self) -> None:
        """Remove the storage event subscription."""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info(f"Cart sync stopped for instance {self.cart.store.source}")

    def handle_storage_event(self, event: StorageEvent) -> None:
        """Reload the cart after another instance changed the cart key."""
        if event.key != self.cart.config.CART_STORAGE_KEY:
            return
        logger.info(f"Cart changed by instance {event.source}, reloading")
        self.cart.reload()
