"""
Manifest Layer.

Turns the text of a stream's ``manifest.txt`` into immutable ``Manifest``
records.
"""

from .parser import parse_manifest

__all__ = ["parse_manifest"]
