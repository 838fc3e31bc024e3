"""
Async HTTP client for manifests and byte-range segment requests, with bounded
retries and circuit breaker protection.
"""

import asyncio
import logging
import time
from typing import Optional

import aiohttp

from abrfetch import __version__
from abrfetch.exceptions import CircuitOpenError, TransportError
from abrfetch.models.config import FetchConfig
from abrfetch.utils.circuit_breaker import CircuitBreaker

log = logging.getLogger(__name__)

# Client errors that may succeed when repeated.
RETRYABLE_CLIENT_STATUSES = (408, 429)


def _is_retryable_status(status: int) -> bool:
    """Client errors are final, apart from timeouts and rate limiting."""
    return not 400 <= status < 500 or status in RETRYABLE_CLIENT_STATUSES


class SegmentTransport:
    """
    Async client for a DASH-style media server.

    Features:
    - Inclusive byte-range requests for segments
    - Bounded retries with exponential backoff
    - Circuit breaker shared by every request of the transport
    - Per-request timeouts so a stalled server cannot hang a session
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        fetch_timeout: float = 30.0,
        connect_timeout: float = 10.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        """
        Initializes the transport.

        Args:
            max_attempts: Attempts per request before giving up.
            base_delay: First backoff delay in seconds, doubled on each retry.
            fetch_timeout: Upper bound in seconds for one whole request.
            connect_timeout: Upper bound in seconds for opening a connection.
            circuit_breaker: Breaker to use; a default one is created if omitted.
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.fetch_timeout = fetch_timeout
        self.connect_timeout = connect_timeout

        self._session: Optional[aiohttp.ClientSession] = None
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            success_threshold=1,
        )

    @classmethod
    def from_config(cls, config: FetchConfig) -> "SegmentTransport":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            fetch_timeout=config.fetch_timeout,
            connect_timeout=config.connect_timeout,
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    @staticmethod
    def manifest_url(base_url: str, stream_name: str) -> str:
        return f"{base_url.rstrip('/')}/{stream_name}/manifest.txt"

    @staticmethod
    def track_url(base_url: str, stream_name: str, filename: str) -> str:
        return f"{base_url.rstrip('/')}/{stream_name}/{filename}"

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": f"abrfetch/{__version__}",
                    # Byte ranges address the stored file, never an encoded body
                    "Accept-Encoding": "identity",
                },
                timeout=aiohttp.ClientTimeout(
                    total=self.fetch_timeout, sock_connect=self.connect_timeout
                ),
            )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "SegmentTransport":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_once(
        self, url: str, byte_range: Optional[tuple[int, int]] = None
    ) -> bytes:
        session = await self._initialize_session()
        headers = {}
        if byte_range is not None:
            start, end = byte_range
            headers["Range"] = f"bytes={start}-{end}"

        async with session.get(url, headers=headers) as response:
            response.raise_for_status()
            body = await response.read()

        if byte_range is None:
            return body

        start, end = byte_range
        expected = end - start + 1
        if response.status == 200 and len(body) > end:
            # Server ignored the Range header and sent the whole file
            log.debug(f"Server ignored range request for {url}, slicing locally.")
            body = body[start : end + 1]
        if len(body) != expected:
            raise aiohttp.ClientPayloadError(
                f"Expected {expected} bytes for range {start}-{end}, got {len(body)}."
            )
        return body

    async def _request(
        self, url: str, byte_range: Optional[tuple[int, int]] = None
    ) -> bytes:
        """Performs a GET with retries, exponential backoff and the circuit breaker."""
        last_exception: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            rejected: Optional[aiohttp.ClientResponseError] = None
            try:
                async with self._circuit_breaker:
                    try:
                        return await self._get_once(url, byte_range)
                    except aiohttp.ClientResponseError as e:
                        if not _is_retryable_status(e.status):
                            # The server answered, so the breaker sees a success
                            rejected = e
                        else:
                            raise
            except CircuitOpenError:
                log.error(f"[red]Circuit breaker is open, not requesting {url}[/red]")
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e

            if rejected is not None:
                raise TransportError(
                    f"GET {url} failed with HTTP {rejected.status} ({rejected.message})."
                ) from rejected

            log.debug(
                f"Request attempt {attempt}/{self.max_attempts} for {url} failed: "
                f"{last_exception!r}."
            )
            if attempt < self.max_attempts:
                await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise TransportError(
            f"GET {url} failed after {self.max_attempts} attempts: {last_exception!r}"
        ) from last_exception

    async def fetch(self, url: str) -> bytes:
        """Fetches a whole resource."""
        return await self._request(url)

    async def fetch_range(self, url: str, start: int, end: int) -> bytes:
        """
        Fetches the closed byte range ``[start, end]`` of a resource.

        Both ends are inclusive, matching the HTTP ``Range`` header, so a
        segment at ``offset`` with ``length`` bytes is requested as
        ``fetch_range(url, offset, offset + length - 1)``.
        """
        if start < 0 or end < start:
            raise ValueError(f"Invalid byte range {start}-{end}.")
        return await self._request(url, (start, end))

    async def fetch_manifest(self, base_url: str, stream_name: str) -> bytes:
        """Fetches ``<base_url>/<stream_name>/manifest.txt``."""
        url = self.manifest_url(base_url, stream_name)
        start_time = time.monotonic()
        data = await self.fetch(url)
        log.debug(
            f"Fetched manifest for '{stream_name}' ({len(data)} bytes) in "
            f"{(time.monotonic() - start_time) * 1000:.0f} ms"
        )
        return data
