"""
Durable key-value stores for cart state.

Every store exposes the same three calls (get, set, remove) over string
values. Writes publish a StorageEvent on the store's event bus so that other
engine instances sharing the same data can resynchronise.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Optional

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from cart_engine.core.events import StorageEvent, StorageEventBus
from cart_engine.core.exceptions import StorageWriteError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Durable string key-value store shared by all instances of one origin."""

    def __init__(self, bus: Optional[StorageEventBus] = None, source: Optional[str] = None):
        self.bus = bus if bus is not None else StorageEventBus()
        self.source = source or uuid.uuid4().hex

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get the value stored under a key, or None."""

    @abstractmethod
    def _write(self, key: str, value: str) -> None:
        """Write a value; raise StorageWriteError on failure."""

    @abstractmethod
    def _delete(self, key: str) -> None:
        """Delete a key; raise StorageWriteError on failure."""

    def set(self, key: str, value: str) -> None:
        """Store a value and notify other instances."""
        self._write(key, value)
        self.bus.publish(StorageEvent(key=key, source=self.source, new_value=value))

    def remove(self, key: str) -> None:
        """Remove a key and notify other instances."""
        self._delete(key)
        self.bus.publish(StorageEvent(key=key, source=self.source, new_value=None))


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local store with a storage quota.

    Handles created with ``open_instance`` share data and event bus but have
    their own source id, the way several browser tabs share one origin's
    storage.
    """

    # Roughly the per-origin quota browsers grant to local storage
    DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024

    def __init__(
        self,
        data: Optional[Dict[str, str]] = None,
        bus: Optional[StorageEventBus] = None,
        source: Optional[str] = None,
        quota_bytes: int = DEFAULT_QUOTA_BYTES
    ):
        super().__init__(bus=bus, source=source)
        self._data = data if data is not None else {}
        self.quota_bytes = quota_bytes

    def open_instance(self, source: Optional[str] = None) -> "InMemoryKeyValueStore":
        """Open another handle over the same data and event bus."""
        return InMemoryKeyValueStore(
            data=self._data,
            bus=self.bus,
            source=source,
            quota_bytes=self.quota_bytes
        )

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write(self, key: str, value: str) -> None:
        used = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
        if used + len(key) + len(value) > self.quota_bytes:
            raise StorageWriteError(key, "storage quota exceeded")
        self._data[key] = value

    def _delete(self, key: str) -> None:
        self._data.pop(key, None)


class MongoKeyValueStore(KeyValueStore):
    """Store backed by a MongoDB collection of ``{_id: key, value: str}`` documents."""

    def __init__(
        self,
        collection: Collection,
        bus: Optional[StorageEventBus] = None,
        source: Optional[str] = None
    ):
        super().__init__(bus=bus, source=source)
        self.collection = collection

    def get(self, key: str) -> Optional[str]:
        document = self.collection.find_one({"_id": key})
        if not document:
            return None
        return document.get("value")

    def _write(self, key: str, value: str) -> None:
        try:
            self.collection.update_one(
                {"_id": key},
                {"$set": {"value": value}},
                upsert=True
            )
        except PyMongoError as e:
            logger.error(f"MongoDB write failed for key '{key}': {str(e)}")
            raise StorageWriteError(key, str(e)) from e

    def _delete(self, key: str) -> None:
        try:
            self.collection.delete_one({"_id": key})
        except PyMongoError as e:
            logger.error(f"MongoDB delete failed for key '{key}': {str(e)}")
            raise StorageWriteError(key, str(e)) from e
