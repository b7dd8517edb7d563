"""FIFO queue of thread ids waiting for the CPU."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator

DEFAULT_CAPACITY = 100


class QueueOverflowError(OverflowError):
    """Raised when a thread id is pushed onto a full ready queue."""


class ReadyQueue:
    """Bounded first-in first-out queue of thread ids."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("ready queue capacity must be positive")
        self._capacity = capacity
        self._items: deque[int] = deque()

    @property
    def capacity(self) -> int:
        """The largest number of ids the queue can hold."""
        return self._capacity

    def push(self, tid: int) -> None:
        """Append ``tid`` to the back of the queue."""
        if len(self._items) >= self._capacity:
            raise QueueOverflowError(f"ready queue overflow when pushing {tid}")
        self._items.append(tid)

    def pop(self) -> int:
        """Remove and return the id at the front of the queue."""
        if not self._items:
            raise IndexError("pop from an empty ready queue")
        return self._items.popleft()

    def remove(self, tid: int) -> None:
        """Drop every occurrence of ``tid``, keeping the order of the rest."""
        self._items = deque(item for item in self._items if item != tid)

    def clear(self) -> None:
        """Empty the queue."""
        self._items.clear()

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[int]:
        return iter(tuple(self._items))

    def __contains__(self, tid: object) -> bool:
        return tid in self._items

    def __repr__(self) -> str:
        return f"ReadyQueue({list(self._items)!r}, capacity={self._capacity})"