"""Round-robin selection over a fixed pool of back-end endpoints."""

import itertools
import threading
from typing import Generic, Iterator, Sequence, TypeVar

T = TypeVar("T")


class EndpointPool(Generic[T]):
    """Immutable list of endpoints with a shared, monotonically increasing cursor.

    Every call to :meth:`next` advances the cursor once, so over K selections each
    of the P endpoints is picked either floor(K/P) or ceil(K/P) times regardless of
    how many requests are in flight.
    """

    def __init__(self, endpoints: Sequence[T], start: int = 0):
        if not endpoints:
            raise ValueError("endpoint pool cannot be empty")
        self._endpoints = tuple(endpoints)
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next(self) -> T:
        with self._lock:
            index = next(self._counter) % len(self._endpoints)
        return self._endpoints[index]

    def __len__(self) -> int:
        return len(self._endpoints)

    def __iter__(self) -> Iterator[T]:
        return iter(self._endpoints)
