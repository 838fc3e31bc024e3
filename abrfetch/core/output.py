"""
The bounded queue that connects a fetch loop to its consumer.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from abrfetch.exceptions import StreamFailedError
from abrfetch.models.content import EndOfStream, OutputItem, SegmentContent, StreamFailed

log = logging.getLogger(__name__)


def create_output_queue(capacity: int) -> "asyncio.Queue[OutputItem]":
    """
    Creates the single-producer, single-consumer output queue.

    A full queue blocks the producer, which keeps read-ahead bounded.
    """
    if capacity < 1:
        raise ValueError(f"Queue capacity must be at least 1, got {capacity}.")
    return asyncio.Queue(maxsize=capacity)


def offer_terminal(queue: "asyncio.Queue[OutputItem]", item: OutputItem) -> bool:
    """
    Enqueues a terminal item without waiting.

    Used on paths that must never block (cancellation, failed start). Returns
    False if the queue was full.
    """
    try:
        queue.put_nowait(item)
    except asyncio.QueueFull:
        log.debug(f"Output queue full, dropped terminal item {item!r}.")
        return False
    return True


def publish_terminal(queue: "asyncio.Queue[OutputItem]", item: OutputItem) -> None:
    """
    Enqueues a terminal item without waiting, making room if the queue is full.

    The newest unconsumed item is discarded to make room, so the consumer
    still sees an unbroken prefix of the stream followed by ``item``. Only
    valid while the caller is the sole producer.
    """
    if offer_terminal(queue, item):
        return
    pending = []
    while not queue.empty():
        pending.append(queue.get_nowait())
        queue.task_done()
    dropped = pending.pop()
    log.debug(f"Output queue full, discarded {dropped!r} for the terminal item.")
    for pending_item in pending:
        queue.put_nowait(pending_item)
    queue.put_nowait(item)


async def iter_segments(
    queue: "asyncio.Queue[OutputItem]",
) -> AsyncIterator[SegmentContent]:
    """
    Yields segment payloads in FIFO order until the stream ends.

    Raises:
        StreamFailedError: If the producer published a ``StreamFailed`` marker.
    """
    while True:
        item = await queue.get()
        try:
            if isinstance(item, EndOfStream):
                return
            if isinstance(item, StreamFailed):
                raise StreamFailedError(item.reason) from item.error
            yield item
        finally:
            queue.task_done()
