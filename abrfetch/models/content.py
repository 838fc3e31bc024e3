"""
Items published on the output queue.

The producer emits ``SegmentContent`` for every payload and finishes the stream
with exactly one terminal item: ``EndOfStream`` on success or ``StreamFailed``
when the session could not go on. Both terminal items expose an empty content
type and an empty payload, so a consumer that only checks for a zero-length
buffer still stops.
"""

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class SegmentContent:
    """A fetched segment payload ready for the player."""

    content_type: str
    data: bytes
    segment_index: int = 0
    track: str = ""
    prebuffer: bool = False


@dataclass(frozen=True)
class EndOfStream:
    """Marks the regular end of a stream."""

    content_type: str = field(default="", init=False)
    data: bytes = field(default=b"", init=False)


@dataclass(frozen=True)
class StreamFailed:
    """Marks a stream that was aborted before its last segment."""

    reason: str
    error: BaseException | None = field(default=None, compare=False)
    content_type: str = field(default="", init=False)
    data: bytes = field(default=b"", init=False)


OutputItem = Union[SegmentContent, EndOfStream, StreamFailed]


def is_terminal(item: OutputItem) -> bool:
    """Returns True if ``item`` closes the stream."""
    return isinstance(item, (EndOfStream, StreamFailed))
