"""
Dataclass for tracking playback session statistics.
"""

import time
from dataclasses import dataclass, field


@dataclass
class SessionStats:
    """Tracks what one fetch loop did, including its throughput estimates."""

    stream_name: str = ""
    total_segments: int = 0
    segments_fetched: int = 0
    prebuffer_fetches: int = 0
    track_switches: int = 0
    bytes_fetched: int = 0
    samples_skipped: int = 0
    segments_per_track: dict[str, int] = field(default_factory=dict)

    last_estimate_kbps: float = 0.0
    peak_estimate_kbps: float = 0.0
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None

    def record_segment(self, track: str, size: int) -> None:
        """Counts one regular segment fetched from ``track``."""
        self.segments_fetched += 1
        self.bytes_fetched += size
        self.segments_per_track[track] = self.segments_per_track.get(track, 0) + 1

    def record_prebuffer(self, size: int) -> None:
        self.prebuffer_fetches += 1
        self.bytes_fetched += size

    def record_estimate(self, kbps: float) -> None:
        self.last_estimate_kbps = kbps
        self.peak_estimate_kbps = max(self.peak_estimate_kbps, kbps)

    def finish(self) -> None:
        if self.finished_at is None:
            self.finished_at = time.monotonic()

    @property
    def duration(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    @property
    def progress(self) -> float:
        """Fraction of the stream's segments fetched so far."""
        if not self.total_segments:
            return 0.0
        return self.segments_fetched / self.total_segments
