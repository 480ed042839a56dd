"""Per-subscriber event channels.

Every component publishes its state changes and data through a
``Broadcaster``. Each subscriber owns an ``asyncio.Queue``; publishing never
blocks. State channels use bounded queues that drop the oldest item, so a
slow consumer always sees the most recent state. Byte channels use
unbounded queues because dropping bytes would corrupt the stream; consumers
drain them with ``read_coalesced``.
"""

import asyncio
from typing import Generic, TypeVar

__all__ = ["Broadcaster", "read_coalesced"]

T = TypeVar("T")


def _enqueue_message(queue: asyncio.Queue[T], message: T) -> None:
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(message)


class Broadcaster(Generic[T]):
    """Fan-out of published items to subscriber queues.

    Must be used from the event loop thread. Threads other than the loop
    thread publish with ``loop.call_soon_threadsafe(broadcaster.publish, item)``.

    Args:
        maxsize: Size of each subscriber queue; 0 for unbounded.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._maxsize = maxsize
        self._subscribers: list[asyncio.Queue[T]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[T]:
        """Register and return a new subscriber queue."""
        queue: asyncio.Queue[T] = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[T]) -> None:
        """Remove a subscriber queue. Unknown queues are ignored."""
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, item: T) -> None:
        """Deliver *item* to every subscriber, dropping the oldest on overflow."""
        for queue in list(self._subscribers):
            _enqueue_message(queue, item)


async def read_coalesced(queue: asyncio.Queue[bytes]) -> bytes:
    """Wait for at least one chunk and return it joined with any pending ones.

    Args:
        queue: A byte-stream subscriber queue.

    Returns:
        All chunks available at the time of the call, concatenated in
        arrival order.
    """
    chunks = [await queue.get()]
    while not queue.empty():
        chunks.append(queue.get_nowait())
    return b"".join(chunks)
