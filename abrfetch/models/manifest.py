"""
Immutable records describing a parsed stream manifest.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Segment:
    """A byte range inside a track's media file."""

    offset: int
    length: int

    @property
    def end(self) -> int:
        """The last byte of the segment (inclusive)."""
        return self.offset + self.length - 1


@dataclass(frozen=True)
class Track:
    """One encoded quality variant of the stream."""

    filename: str
    content_type: str
    avg_bandwidth: int  # bits per second
    segments: tuple[Segment, ...]

    @property
    def avg_bandwidth_kbps(self) -> float:
        return self.avg_bandwidth / 1000


@dataclass(frozen=True)
class Manifest:
    """
    A stream name and its ordered tracks.

    Track order is the order of the manifest file and carries no bandwidth
    ranking. Segment ``i`` of every track covers the same temporal position,
    so all tracks must have the same number of segments.
    """

    name: str
    tracks: tuple[Track, ...]

    def __post_init__(self):
        if not self.tracks:
            raise ValueError("A manifest needs at least one track.")
        counts = {len(track.segments) for track in self.tracks}
        if len(counts) != 1:
            raise ValueError(
                f"All tracks must have the same segment count, got {sorted(counts)}."
            )
        if 0 in counts:
            raise ValueError("Tracks must contain at least one segment.")

    @property
    def num_segments(self) -> int:
        return len(self.tracks[0].segments)

    def track(self, filename: str) -> Track:
        """Looks up a track by its filename."""
        for track in self.tracks:
            if track.filename == filename:
                return track
        raise KeyError(filename)
