"""
Transport Layer.

This package performs the HTTP requests against the media server: plain GETs
for manifests and byte-range GETs for segments.
"""

from .client import SegmentTransport

__all__ = ["SegmentTransport"]
