"""
Delivery queue: ordered buffer of events not yet sent.

Unbounded by default. A bounded queue applies its overflow policy but
never reorders the events it keeps.
"""

from collections import deque
from typing import Awaitable, Callable, Deque, Iterator, Optional, Union

from .decoder import Event
from ..utils.config import OverflowPolicy
from ..utils.logging import get_logger

logger = get_logger("vibex.streaming.queue")

# Returns True when the event was taken, False when the sink is saturated
Sink = Callable[[Event], Awaitable[bool]]


class DeliveryQueue:
    """FIFO of events awaiting transmission."""

    def __init__(
        self,
        max_size: Optional[int] = None,
        overflow: Union[OverflowPolicy, str] = OverflowPolicy.DROP_OLDEST,
    ):
        if max_size is not None and max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.overflow = OverflowPolicy(overflow)
        self._items: Deque[Event] = deque()

        # Stats
        self.total_enqueued = 0
        self.total_forwarded = 0
        self.overflow_dropped = 0

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._items))

    def size(self) -> int:
        return len(self._items)

    @property
    def is_full(self) -> bool:
        return self.max_size is not None and len(self._items) >= self.max_size

    def enqueue(self, event: Event) -> bool:
        """
        Append an event to the tail.

        Returns False only when a bounded queue with the REJECT_NEW policy
        refused the event.
        """
        if self.is_full:
            self.overflow_dropped += 1
            if self.overflow is OverflowPolicy.REJECT_NEW:
                logger.warning("queue_full_rejected", max_size=self.max_size)
                return False
            self._items.popleft()
            logger.warning("queue_full_dropped_oldest", max_size=self.max_size)

        self._items.append(event)
        self.total_enqueued += 1
        return True

    async def drain_into(self, sink: Sink) -> int:
        """
        Forward events from the head, in order.

        An event leaves the queue only once the sink has taken it. Stops at
        the first refusal or when the queue is empty.

        Returns:
            Number of events forwarded
        """
        forwarded = 0
        while self._items:
            event = self._items[0]
            if not await sink(event):
                break
            # The sink may suspend; only pop the event it actually took
            if self._items and self._items[0] is event:
                self._items.popleft()
            forwarded += 1

        self.total_forwarded += forwarded
        if forwarded:
            logger.debug("queue_drained", forwarded=forwarded, remaining=len(self._items))
        return forwarded

    def clear(self) -> int:
        """Discard every queued event. Returns how many were discarded."""
        discarded = len(self._items)
        self._items.clear()
        return discarded


__all__ = ["DeliveryQueue", "Sink"]
