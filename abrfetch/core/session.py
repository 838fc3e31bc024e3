"""
Session entry point: fetches the manifest and starts one fetch loop task per
stream.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Optional, Protocol

from abrfetch.exceptions import ManifestParseError, SessionStartError, TransportError
from abrfetch.manifest.parser import parse_manifest
from abrfetch.models.config import FetchConfig
from abrfetch.models.content import OutputItem, StreamFailed
from abrfetch.models.manifest import Manifest
from abrfetch.models.stats import SessionStats

from .fetch_loop import FetchLoop, LoopState
from .output import publish_terminal

log = logging.getLogger(__name__)


class StreamTransport(Protocol):
    async def fetch_manifest(self, base_url: str, stream_name: str) -> bytes: ...

    async def fetch_range(self, url: str, start: int, end: int) -> bytes: ...


class StreamSession:
    """Handle on a running fetch loop."""

    def __init__(self, fetch_loop: FetchLoop, task: "asyncio.Task[SessionStats]"):
        self.fetch_loop = fetch_loop
        self._task = task
        task.add_done_callback(self._log_outcome)

    @property
    def manifest(self) -> Manifest:
        return self.fetch_loop.manifest

    @property
    def stats(self) -> SessionStats:
        return self.fetch_loop.stats

    @property
    def state(self) -> LoopState:
        return self.fetch_loop.state

    @property
    def done(self) -> bool:
        return self._task.done()

    def _log_outcome(self, task: asyncio.Task) -> None:
        # Retrieving the exception here keeps asyncio from reporting it as unhandled
        if task.cancelled():
            log.debug(f"Fetch loop for '{self.manifest.name}' was cancelled.")
        elif (exc := task.exception()) is not None:
            log.debug(f"Fetch loop for '{self.manifest.name}' ended with {exc!r}.")

    async def wait(self) -> SessionStats:
        """
        Waits for the fetch loop to finish.

        Raises:
            SegmentFetchError: If the stream failed mid-way.
            asyncio.CancelledError: If the session was cancelled.
        """
        return await self._task

    async def cancel(self) -> None:
        """Stops the fetch loop, e.g. because the consumer went away."""
        if self._task.done():
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        if self.fetch_loop.state is LoopState.INIT:
            # Cancelled before its first step, so run() never published a marker
            self.fetch_loop.mark_cancelled()


async def start_session(
    stream_name: str,
    queue: "asyncio.Queue[OutputItem]",
    transport: StreamTransport,
    config: Optional[FetchConfig] = None,
) -> StreamSession:
    """
    Fetches and parses the stream's manifest, then starts its fetch loop.

    Args:
        stream_name: Directory of the stream on the media server.
        queue: Bounded output queue the consumer reads from.
        transport: Transport used for the manifest and every segment.
        config: Session settings; defaults are used if omitted.

    Returns:
        A handle on the running session.

    Raises:
        SessionStartError: If the manifest could not be fetched or parsed. A
        ``StreamFailed`` marker is also published to the queue so a consumer
        that is already waiting does not hang.
    """
    config = config or FetchConfig()

    try:
        data = await transport.fetch_manifest(config.base_url, stream_name)
        manifest = parse_manifest(data, stream_name)
    except (TransportError, ManifestParseError) as e:
        reason = f"Could not start stream '{stream_name}': {e}"
        log.error(f"[red]✗ {reason}[/red]")
        publish_terminal(queue, StreamFailed(reason, e))
        raise SessionStartError(reason) from e

    fetch_loop = FetchLoop(
        manifest,
        transport,
        queue,
        config.base_url,
        window_size=config.window_size,
        min_transfer_seconds=config.min_transfer_seconds,
    )
    task = asyncio.create_task(fetch_loop.run(), name=f"fetch-loop:{stream_name}")
    return StreamSession(fetch_loop, task)
