"""
Storage change notifications shared by every engine instance of one origin.

A write through any store handle publishes a StorageEvent for the mutated key.
Subscribers registered under the same source as the writer are skipped, so an
instance never receives notifications for its own writes. Delivery happens on
a later task: events are scheduled on the running asyncio loop, or on the loop
attached with ``attach_loop`` when published from a worker thread. Without a
loop they are queued until ``deliver_pending`` is called. Events nobody else
observes are dropped at publish time.
"""

import asyncio
import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    """Notification that a key in the durable store was written or removed."""
    key: str
    source: str
    new_value: Optional[str] = None


StorageEventHandler = Callable[[StorageEvent], None]


class StorageEventBus:
    """In-process publish/subscribe channel for storage events."""

    def __init__(self):
        self._handlers: Dict[str, List[Tuple[Optional[str], StorageEventHandler]]] = defaultdict(list)
        self._pending: Deque[StorageEvent] = deque()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def attach_loop(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        """Deliver events published outside a running loop on ``loop``; None detaches."""
        self._loop = loop

    def subscribe(
        self,
        key: str,
        handler: StorageEventHandler,
        source: Optional[str] = None
    ) -> Callable[[], None]:
        """
        Register a handler for events on a key.

        Args:
            key: Storage key to watch
            handler: Callable invoked with each StorageEvent
            source: Source id of the subscriber; events written by it are skipped

        Returns:
            Callable that removes the subscription
        """
        entry = (source, handler)
        self._handlers[key].append(entry)

        def unsubscribe() -> None:
            handlers = self._handlers.get(key, [])
            if entry in handlers:
                handlers.remove(entry)
            if not handlers:
                self._handlers.pop(key, None)

        return unsubscribe

    def publish(self, event: StorageEvent) -> None:
        """Schedule delivery of an event to every other subscriber of its key."""
        if not self._has_receivers(event):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = self._loop

        if loop is None or loop.is_closed():
            self._pending.append(event)
            return

        loop.call_soon_threadsafe(self._deliver, event)

    def deliver_pending(self) -> int:
        """
        Deliver events queued while no event loop was running.

        Returns:
            Number of events delivered
        """
        delivered = 0
        while self._pending:
            self._deliver(self._pending.popleft())
            delivered += 1
        return delivered

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _has_receivers(self, event: StorageEvent) -> bool:
        return any(
            not self._is_own_write(source, event)
            for source, _ in self._handlers.get(event.key, [])
        )

    @staticmethod
    def _is_own_write(source: Optional[str], event: StorageEvent) -> bool:
        return source is not None and source == event.source

    def _deliver(self, event: StorageEvent) -> None:
        for source, handler in list(self._handlers.get(event.key, [])):
            if self._is_own_write(source, event):
                continue
            try:
                handler(event)
            except Exception as e:
                # Remaining subscribers still receive the event
                logger.error(f"Storage event handler failed for key '{event.key}': {str(e)}")
