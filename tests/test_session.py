import asyncio
import unittest

from abrfetch.core.fetch_loop import LoopState
from abrfetch.core.output import create_output_queue, iter_segments
from abrfetch.core.session import start_session
from abrfetch.exceptions import (
    ManifestParseError,
    SegmentFetchError,
    SessionStartError,
    StreamFailedError,
    TransportError,
)
from abrfetch.models.config import FetchConfig
from abrfetch.models.content import StreamFailed

from tests.fakes import BASE_URL, SEGMENT_LENGTH, FakeTransport, let_run, make_manifest


class StartSessionTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.config = FetchConfig(base_url=BASE_URL, queue_capacity=2)

    async def test_session_streams_whole_manifest(self):
        manifest = make_manifest(name="movie", bandwidths=(300_000, 900_000), num_segments=4)
        transport = FakeTransport(manifest)
        queue = create_output_queue(self.config.queue_capacity)

        session = await start_session("movie", queue, transport, self.config)
        received = [item async for item in iter_segments(queue)]
        stats = await session.wait()

        self.assertEqual(transport.manifest_requests, [(BASE_URL, "movie")])
        self.assertEqual(session.manifest, manifest)
        self.assertEqual(session.state, LoopState.DONE)
        self.assertTrue(session.done)
        regular = [item.segment_index for item in received if not item.prebuffer]
        self.assertEqual(regular, [0, 1, 2, 3])
        self.assertEqual(stats.segments_fetched, 4)
        self.assertIs(stats, session.stats)

    async def test_manifest_fetch_failure_does_not_start(self):
        transport = FakeTransport(manifest_error=TransportError("connection refused"))
        queue = create_output_queue(2)

        with self.assertRaises(SessionStartError) as ctx:
            await start_session("movie", queue, transport, self.config)

        self.assertIsInstance(ctx.exception.__cause__, TransportError)
        # A consumer already waiting on the queue is released
        marker = queue.get_nowait()
        self.assertIsInstance(marker, StreamFailed)
        self.assertTrue(queue.empty())
        self.assertEqual(transport.calls, [])

    async def test_malformed_manifest_does_not_start(self):
        transport = FakeTransport(raw_manifest=b"track only-a-name\n")
        queue = create_output_queue(2)

        with self.assertRaises(SessionStartError) as ctx:
            await start_session("movie", queue, transport, self.config)

        self.assertIsInstance(ctx.exception.__cause__, ManifestParseError)

    async def test_mid_stream_failure_reaches_both_sides(self):
        manifest = make_manifest(num_segments=3)
        transport = FakeTransport(manifest, fail_at=("demo-500.mp4", SEGMENT_LENGTH))
        queue = create_output_queue(2)

        session = await start_session("demo", queue, transport, self.config)
        received = []
        with self.assertRaises(StreamFailedError):
            async for item in iter_segments(queue):
                received.append(item)
        with self.assertRaises(SegmentFetchError):
            await session.wait()

        self.assertEqual([item.segment_index for item in received], [0])
        self.assertEqual(session.state, LoopState.FAILED)

    async def test_cancel_when_consumer_goes_away(self):
        manifest = make_manifest(num_segments=50)
        transport = FakeTransport(manifest)
        queue = create_output_queue(2)

        session = await start_session("demo", queue, transport, self.config)
        await let_run()
        self.assertFalse(session.done)

        await asyncio.wait_for(session.cancel(), timeout=1)

        self.assertTrue(session.done)
        self.assertEqual(session.state, LoopState.CANCELLED)
        self.assertLess(len(transport.calls), 50)
        # Cancelling twice is harmless
        await session.cancel()

    async def test_consumer_finishes_after_cancel_with_full_queue(self):
        manifest = make_manifest(num_segments=10)
        transport = FakeTransport(manifest)
        queue = create_output_queue(2)

        session = await start_session("demo", queue, transport, self.config)
        await let_run()
        self.assertTrue(queue.full())
        await session.cancel()

        received = []

        async def consume():
            async for item in iter_segments(queue):
                received.append(item.segment_index)

        with self.assertRaises(StreamFailedError) as ctx:
            await asyncio.wait_for(consume(), timeout=1)

        self.assertEqual(str(ctx.exception), "cancelled")
        self.assertEqual(received, [0])

    async def test_cancel_before_first_step_releases_consumer(self):
        manifest = make_manifest(num_segments=3)
        transport = FakeTransport(manifest)
        queue = create_output_queue(2)

        session = await start_session("demo", queue, transport, self.config)
        await session.cancel()

        self.assertEqual(session.state, LoopState.CANCELLED)
        self.assertEqual(transport.calls, [])
        self.assertEqual(queue.get_nowait(), StreamFailed("cancelled"))


if __name__ == "__main__":
    unittest.main()
