"""
Circuit breaker guarding requests to the media server.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

from abrfetch.exceptions import CircuitOpenError

log = logging.getLogger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking requests
    HALF_OPEN = "half_open"  # Testing if the server recovered


class CircuitBreaker:
    """
    Stops hammering a media server that keeps failing.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: Too many consecutive failures, requests blocked
    - HALF_OPEN: Testing recovery, a success closes the circuit again
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        success_threshold: int = 1,
        clock=time.monotonic,
    ):
        """
        Args:
            failure_threshold: Number of consecutive failures before opening.
            recovery_timeout: Seconds to wait before letting a probe through.
            success_threshold: Consecutive successes needed to close again.
            clock: Monotonic time source.
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state

    def _check_state(self) -> None:
        """Moves from OPEN to HALF_OPEN once the recovery timeout has elapsed."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            elapsed = self._clock() - self._last_failure_time
            if elapsed >= self.recovery_timeout:
                log.info(
                    f"[yellow]Circuit breaker half-open, probing the media server "
                    f"after {elapsed:.0f}s[/yellow]"
                )
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0

    async def _on_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    log.info("[green]✓ Media server recovered, circuit closed.[/green]")
                    self._state = CircuitState.CLOSED
                    self._success_count = 0

    async def _on_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                log.warning(
                    "[yellow]Circuit breaker probe failed, opening again.[/yellow]"
                )
                self._state = CircuitState.OPEN
                self._failure_count = 0
                self._success_count = 0
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                log.error(
                    f"[red]✗ Circuit breaker opened after {self._failure_count} "
                    f"consecutive failures. Requests blocked for "
                    f"{self.recovery_timeout:.0f}s.[/red]"
                )
                self._state = CircuitState.OPEN

    async def __aenter__(self):
        async with self._lock:
            self._check_state()
            if self._state == CircuitState.OPEN:
                raise CircuitOpenError(
                    f"Circuit is open. Will try to recover after "
                    f"{self.recovery_timeout:.0f} seconds."
                )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            await self._on_success()
        elif not issubclass(exc_type, asyncio.CancelledError):
            await self._on_failure()
