import threading
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    A thread-safe fixed-capacity circular buffer of items.

    Writes never block: once the buffer is full, each put evicts the oldest
    item.
    """

    def __init__(self, capacity: int):
        """
        Initializes the RingBuffer.

        Args:
            capacity (int): The maximum number of items held at once.
        """
        if capacity <= 0:
            raise ValueError("Buffer capacity must be positive")
        self.size = capacity
        self.slots: List[Optional[T]] = [None] * capacity
        self.head = 0  # next write position
        self.tail = 0  # oldest item
        self.count = 0
        self.evicted = 0  # items dropped by put, never reset
        self.lock = threading.Lock()
        self.data_available = threading.Condition(self.lock)

    def put(self, item: T) -> Optional[T]:
        """
        Puts an item into the buffer, evicting the oldest one when full.

        Args:
            item: The item to store.

        Returns:
            The evicted item, or None if nothing was evicted.
        """
        with self.data_available:
            evicted = self.slots[self.head]
            self.slots[self.head] = item
            self.head = (self.head + 1) % self.size
            if self.count < self.size:
                self.count += 1
                evicted = None
            else:
                self.tail = (self.tail + 1) % self.size
                self.evicted += 1
            self.data_available.notify()
            return evicted

    def peek(self, max_items: Optional[int] = None) -> List[T]:
        """
        Returns up to max_items items, oldest first, without removing them.
        """
        with self.lock:
            n = self.count if max_items is None else max(0, min(max_items, self.count))
            out: List[T] = []
            for i in range(n):
                item = self.slots[(self.tail + i) % self.size]
                if item is not None:
                    out.append(item)
            return out

    def get(self, max_items: int, timeout: float = 0.1) -> List[T]:
        """
        Removes and returns up to max_items items, oldest first. Blocks while
        the buffer is empty.

        Args:
            max_items (int): The maximum number of items to read.
            timeout (float): The maximum time to wait in seconds.

        Returns:
            List of items. Empty if it timed out.
        """
        with self.data_available:
            if self.count == 0:
                if not self.data_available.wait_for(lambda: self.count > 0, timeout=timeout):
                    return []

            out: List[T] = []
            for _ in range(min(max_items, self.count)):
                item = self.slots[self.tail]
                self.slots[self.tail] = None
                self.tail = (self.tail + 1) % self.size
                self.count -= 1
                if item is not None:
                    out.append(item)
            return out

    def clear(self) -> int:
        """Drops every item and resets the indices. Returns how many were dropped."""
        with self.lock:
            dropped = self.count
            self.slots = [None] * self.size
            self.head = 0
            self.tail = 0
            self.count = 0
            return dropped

    def __len__(self) -> int:
        """Returns the number of items currently in the buffer."""
        with self.lock:
            return self.count

    @property
    def capacity(self) -> int:
        """Returns the total capacity of the buffer."""
        return self.size

    @property
    def free_space(self) -> int:
        """Returns the number of free slots in the buffer."""
        with self.lock:
            return self.size - self.count
