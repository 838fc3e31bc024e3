"""
The fetch loop: downloads a stream segment by segment, adapting the track to
the observed throughput and publishing payloads on the output queue.
"""

import asyncio
import logging
import math
import time
from collections.abc import Callable
from enum import Enum
from typing import Optional, Protocol

from abrfetch.exceptions import SegmentFetchError, TransportError
from abrfetch.models.content import EndOfStream, OutputItem, SegmentContent, StreamFailed
from abrfetch.models.manifest import Manifest, Track
from abrfetch.models.stats import SessionStats
from abrfetch.transport.client import SegmentTransport
from abrfetch.utils.formatting import format_bitrate

from .estimator import DEFAULT_WINDOW_SIZE, ThroughputEstimator
from .output import publish_terminal
from .selector import select_track

log = logging.getLogger(__name__)


class RangeFetcher(Protocol):
    async def fetch_range(self, url: str, start: int, end: int) -> bytes: ...


class LoopState(Enum):
    """Lifecycle of a fetch loop."""

    INIT = "init"
    STREAMING = "streaming"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class FetchLoop:
    """
    Drives one playback session.

    For every segment index the loop picks the track closest to the current
    throughput estimate and fetches that track's segment with an inclusive
    byte-range request. When the pick differs from the previous one, the new
    track's first segment is fetched and published first so the player can
    reinitialise its decoder. Only regular segments feed the estimator.

    Publishing blocks while the output queue is full, which paces the loop to
    the consumer. After the last segment a single ``EndOfStream`` is published.
    """

    def __init__(
        self,
        manifest: Manifest,
        transport: RangeFetcher,
        queue: "asyncio.Queue[OutputItem]",
        base_url: str,
        window_size: int = DEFAULT_WINDOW_SIZE,
        min_transfer_seconds: float = 1e-6,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            manifest: The parsed manifest of the stream.
            transport: Anything with an async ``fetch_range(url, start, end)``.
            queue: The bounded output queue shared with the consumer.
            base_url: Media server root; tracks live at ``<base_url>/<stream>/<file>``.
            window_size: Number of recent segments the estimator averages.
            min_transfer_seconds: Transfers faster than this give no usable rate.
            clock: Monotonic time source used to time transfers.
        """
        self.manifest = manifest
        self.base_url = base_url
        self.stats = SessionStats(
            stream_name=manifest.name, total_segments=manifest.num_segments
        )
        self._transport = transport
        self._queue = queue
        self._estimator = ThroughputEstimator(window_size)
        self._min_transfer_seconds = min_transfer_seconds
        self._clock = clock
        self._state = LoopState.INIT
        self._previous_track: Optional[Track] = None

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def estimator(self) -> ThroughputEstimator:
        return self._estimator

    @property
    def current_track(self) -> Optional[Track]:
        """The track used for the most recent regular segment."""
        return self._previous_track

    def _track_url(self, track: Track) -> str:
        return SegmentTransport.track_url(self.base_url, self.manifest.name, track.filename)

    def _transfer_rate(self, size: int, seconds: float) -> Optional[float]:
        """Returns the rate in kbit/s, or None if the timing is unusable."""
        if seconds < self._min_transfer_seconds:
            return None
        rate = (size * 8) / (1000 * seconds)
        return rate if math.isfinite(rate) else None

    async def _prebuffer(self, track: Track) -> None:
        first = track.segments[0]
        data = await self._transport.fetch_range(
            self._track_url(track), first.offset, first.end
        )
        self.stats.record_prebuffer(len(data))
        await self._queue.put(
            SegmentContent(
                track.content_type, data, segment_index=0, track=track.filename, prebuffer=True
            )
        )

    async def _step(self, index: int) -> None:
        estimate = self._estimator.estimate()
        self.stats.record_estimate(estimate)
        track = select_track(estimate, self.manifest.tracks)

        previous = self._previous_track
        if previous is not None and track.filename != previous.filename:
            self.stats.track_switches += 1
            log.info(
                f"Switching '{self.manifest.name}' from {previous.filename} to "
                f"{track.filename} at segment {index} "
                f"(estimate {format_bitrate(estimate)})"
            )
            await self._prebuffer(track)

        segment = track.segments[index]
        started = self._clock()
        data = await self._transport.fetch_range(
            self._track_url(track), segment.offset, segment.end
        )
        elapsed = self._clock() - started

        rate = self._transfer_rate(len(data), elapsed)
        if rate is None:
            self.stats.samples_skipped += 1
            # The slot may still hold the rate of segment index - window_size
            self._estimator.clear(index)
            log.debug(
                f"Segment {index} transfer took {elapsed:.9f}s, too short to "
                f"measure. Estimating from the other samples in the window."
            )
        else:
            self._estimator.record(rate, index)
        self.stats.record_segment(track.filename, len(data))

        log.debug(
            f"Segment {index + 1}/{self.manifest.num_segments} from {track.filename}: "
            f"{len(data)} bytes"
            + (f" at {format_bitrate(rate)}" if rate is not None else "")
        )

        await self._queue.put(
            SegmentContent(
                track.content_type, data, segment_index=index, track=track.filename
            )
        )
        self._previous_track = track

    def mark_cancelled(self) -> None:
        """Moves the loop to CANCELLED and tells the consumer the stream is over."""
        self._state = LoopState.CANCELLED
        log.info(f"[yellow]Stream '{self.manifest.name}' cancelled.[/yellow]")
        publish_terminal(self._queue, StreamFailed("cancelled"))

    async def _publish_failure(self, item: StreamFailed) -> None:
        # Waits for room so the consumer still gets every fetched segment
        try:
            await self._queue.put(item)
        except asyncio.CancelledError:
            self.mark_cancelled()
            raise

    async def run(self) -> SessionStats:
        """
        Fetches every segment and finishes the stream.

        Returns:
            The statistics of the completed session.

        Raises:
            SegmentFetchError: If a segment could not be fetched. A
            ``StreamFailed`` marker is published before raising. Any other
            error from the transport is re-raised after the same marker.
            asyncio.CancelledError: If the task was cancelled. The queue then
            ends with ``StreamFailed("cancelled")``, replacing the newest
            unconsumed item if the queue was full.
        """
        if self._state is not LoopState.INIT:
            raise RuntimeError(f"Fetch loop already ran (state: {self._state.value}).")

        self._state = LoopState.STREAMING
        log.info(
            f"Streaming '{self.manifest.name}': {self.manifest.num_segments} segments, "
            f"{len(self.manifest.tracks)} tracks."
        )
        try:
            for index in range(self.manifest.num_segments):
                await self._step(index)

            self._state = LoopState.DRAINING
            await self._queue.put(EndOfStream())
        except asyncio.CancelledError:
            self.mark_cancelled()
            raise
        except TransportError as e:
            self._state = LoopState.FAILED
            log.error(
                f"[red]✗ Stream '{self.manifest.name}' failed after "
                f"{self.stats.segments_fetched} segments: {e}[/red]"
            )
            await self._publish_failure(StreamFailed(str(e), e))
            raise SegmentFetchError(
                f"Stream '{self.manifest.name}' aborted at segment "
                f"{self.stats.segments_fetched}: {e}"
            ) from e
        except Exception as e:
            self._state = LoopState.FAILED
            log.exception(f"[red]✗ Stream '{self.manifest.name}' crashed: {e!r}[/red]")
            await self._publish_failure(StreamFailed(str(e) or type(e).__name__, e))
            raise
        finally:
            self.stats.finish()

        self._state = LoopState.DONE
        log.info(
            f"[green]✓ Stream '{self.manifest.name}' complete: "
            f"{self.stats.segments_fetched} segments, "
            f"{self.stats.track_switches} track switches.[/green]"
        )
        return self.stats
