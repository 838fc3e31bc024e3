import asyncio
import unittest

from abrfetch.core.output import (
    create_output_queue,
    iter_segments,
    offer_terminal,
    publish_terminal,
)
from abrfetch.exceptions import StreamFailedError, TransportError
from abrfetch.models.content import EndOfStream, SegmentContent, StreamFailed, is_terminal


class OutputQueueTests(unittest.IsolatedAsyncioTestCase):
    def test_queue_is_bounded(self):
        queue = create_output_queue(2)
        self.assertEqual(queue.maxsize, 2)
        for capacity in (0, -1):
            with self.assertRaises(ValueError):
                create_output_queue(capacity)

    def test_offer_terminal_never_blocks(self):
        queue = create_output_queue(1)
        self.assertTrue(offer_terminal(queue, EndOfStream()))
        self.assertFalse(offer_terminal(queue, StreamFailed("late")))
        self.assertEqual(queue.qsize(), 1)

    def test_publish_terminal_appends_when_there_is_room(self):
        queue = create_output_queue(2)
        queue.put_nowait(SegmentContent("video/mp4", b"a", segment_index=0))
        publish_terminal(queue, EndOfStream())
        self.assertEqual(queue.qsize(), 2)
        self.assertEqual(queue.get_nowait().segment_index, 0)
        self.assertIsInstance(queue.get_nowait(), EndOfStream)

    async def test_publish_terminal_replaces_newest_item_when_full(self):
        queue = create_output_queue(3)
        for i in range(3):
            queue.put_nowait(SegmentContent("video/mp4", b"x", segment_index=i))

        publish_terminal(queue, StreamFailed("cancelled"))

        items = [queue.get_nowait() for _ in range(queue.qsize())]
        self.assertEqual([item.segment_index for item in items[:-1]], [0, 1])
        self.assertEqual(items[-1], StreamFailed("cancelled"))
        for _ in items:
            queue.task_done()
        # Discarded items were marked done, so join() does not wait on them
        await asyncio.wait_for(queue.join(), timeout=1)

    def test_terminal_items_look_like_the_empty_sentinel(self):
        for item in (EndOfStream(), StreamFailed("boom")):
            self.assertTrue(is_terminal(item))
            self.assertEqual(item.content_type, "")
            self.assertEqual(item.data, b"")
        # An empty real segment is not mistaken for the end of the stream
        self.assertFalse(is_terminal(SegmentContent("video/mp4", b"")))

    async def test_iter_segments_yields_in_order_until_end(self):
        queue = create_output_queue(5)
        for i in range(3):
            queue.put_nowait(SegmentContent("video/mp4", bytes([i]), segment_index=i))
        queue.put_nowait(EndOfStream())

        received = [item async for item in iter_segments(queue)]

        self.assertEqual([item.segment_index for item in received], [0, 1, 2])
        self.assertTrue(queue.empty())
        await asyncio.wait_for(queue.join(), timeout=1)

    async def test_iter_segments_raises_on_failure_marker(self):
        queue = create_output_queue(5)
        cause = TransportError("connection reset")
        queue.put_nowait(SegmentContent("video/mp4", b"a"))
        queue.put_nowait(StreamFailed("connection reset", cause))

        received = []
        with self.assertRaises(StreamFailedError) as ctx:
            async for item in iter_segments(queue):
                received.append(item)

        self.assertEqual(len(received), 1)
        self.assertIs(ctx.exception.__cause__, cause)

    async def test_iter_segments_waits_for_producer(self):
        queue = create_output_queue(1)

        async def produce():
            for i in range(4):
                await queue.put(SegmentContent("audio/mp4", b"x", segment_index=i))
            await queue.put(EndOfStream())

        producer = asyncio.create_task(produce())
        received = [item.segment_index async for item in iter_segments(queue)]
        await producer

        self.assertEqual(received, [0, 1, 2, 3])


if __name__ == "__main__":
    unittest.main()
