"""Exceptions raised by the cart engine."""


class CartEngineError(Exception):
    """Base class for cart engine errors."""


class StorageWriteError(CartEngineError):
    """Raised when the durable store rejects a write (quota, permissions, backend down)."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to write '{key}' to durable store: {reason}")
