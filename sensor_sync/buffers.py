from __future__ import annotations

from collections import deque
from typing import Deque, Generic, Iterator, Optional, Protocol, TypeVar


class Timestamped(Protocol):
    t: float


S = TypeVar("S", bound=Timestamped)


class SampleBuffer(Generic[S]):
    """
    Fixed-capacity FIFO of samples of one kind.

    Samples are kept in insertion order and never re-sorted; once full, each
    append evicts the oldest sample.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = int(capacity)
        self._items: Deque[S] = deque(maxlen=self.capacity)

    def append(self, sample: S) -> None:
        self._items.append(sample)

    def nearest(self, t: float) -> Optional[S]:
        """
        Sample minimizing |sample.t - t| by linear scan. Ties keep the earliest
        inserted sample. None when the buffer is empty.
        """
        best: Optional[S] = None
        best_dist = float("inf")
        for s in self._items:
            d = abs(s.t - t)
            if d < best_dist:
                best = s
                best_dist = d
        return best

    @property
    def latest(self) -> Optional[S]:
        return self._items[-1] if self._items else None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[S]:
        return iter(list(self._items))
