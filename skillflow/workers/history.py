"""Fixed-size, newest-first history buffer."""

from collections import deque
from typing import Callable, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")


class BoundedHistory(Generic[T]):
    """Keeps the newest *maxlen* items; the oldest is evicted on overflow.

    Readers always get a list copy, so iterating a snapshot is safe while a
    new item is being appended.
    """

    def __init__(self, maxlen: int, items: Optional[Iterable[T]] = None):
        if maxlen < 1:
            raise ValueError(f"maxlen must be >= 1, got {maxlen}")
        self._items: deque[T] = deque(maxlen=maxlen)
        for item in items or ():
            self.append(item)

    @property
    def maxlen(self) -> int:
        return self._items.maxlen or 0

    def append(self, item: T) -> None:
        self._items.appendleft(item)

    def snapshot(self, limit: Optional[int] = None) -> list[T]:
        items = list(self._items)
        return items if limit is None else items[:max(limit, 0)]

    def filter(self, predicate: Callable[[T], bool], limit: Optional[int] = None) -> list[T]:
        matched = [item for item in list(self._items) if predicate(item)]
        return matched if limit is None else matched[:max(limit, 0)]

    def latest(self, predicate: Callable[[T], bool]) -> Optional[T]:
        for item in list(self._items):
            if predicate(item):
                return item
        return None

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
