"""
Data Models Layer.

This package contains the immutable manifest records, the items that travel
through the output queue, the validated configuration model, and the
per-session statistics.
"""

from .config import FetchConfig
from .content import EndOfStream, OutputItem, SegmentContent, StreamFailed, is_terminal
from .manifest import Manifest, Segment, Track
from .stats import SessionStats

__all__ = [
    "EndOfStream",
    "FetchConfig",
    "Manifest",
    "OutputItem",
    "Segment",
    "SegmentContent",
    "SessionStats",
    "StreamFailed",
    "Track",
    "is_terminal",
]
