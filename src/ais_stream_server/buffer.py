"""Bounded ring buffer for inbound AIS messages."""

from collections import deque
from typing import Any, Iterator, Optional


class MessageRingBuffer:
    """
    Fixed-capacity FIFO holding the most recent messages of one connection.

    Appending to a full buffer evicts the oldest message first, so memory use
    stays constant no matter how fast the upstream feed publishes.
    """

    def __init__(self, capacity: int = 100):
        """
        Initialize the buffer.

        Args:
            capacity: Maximum number of messages kept. Must be >= 1.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._items: deque[Any] = deque(maxlen=capacity)
        self._evicted_count = 0

    @property
    def capacity(self) -> int:
        """Maximum number of messages kept."""
        return self._items.maxlen

    @property
    def evicted_count(self) -> int:
        """Number of messages evicted to make room for newer ones."""
        return self._evicted_count

    def append(self, item: Any) -> None:
        """Add a message, evicting the oldest one if the buffer is full."""
        if len(self._items) == self.capacity:
            self._evicted_count += 1
        self._items.append(item)

    def snapshot(self, n: Optional[int] = None) -> list[Any]:
        """
        Return the last ``n`` messages in arrival order.

        Args:
            n: Number of messages to return, capped at the capacity.
               None returns everything held.
        """
        if n is None:
            return list(self._items)
        if n <= 0:
            return []
        n = min(n, len(self._items))
        return list(self._items)[-n:] if n else []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)
