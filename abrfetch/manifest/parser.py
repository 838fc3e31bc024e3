"""
Parser for the line-oriented ``manifest.txt`` format served next to each stream.

Example::

    # optional comments
    stream monsters
    track monsters-160.mp4 160000 video/mp4; codecs="avc1.42c01e"
    0 1024
    1024 2048
    track monsters-480.mp4 480000 video/mp4; codecs="avc1.4d401f"
    0 3072
    3072 6144

Every ``track`` line is followed by the ``<offset> <length>`` lines of its
segments. The content type is the remainder of the ``track`` line and may
contain spaces.
"""

import logging

from abrfetch.exceptions import ManifestParseError
from abrfetch.models.manifest import Manifest, Segment, Track

log = logging.getLogger(__name__)


def _parse_int(token: str, what: str, line_number: int) -> int:
    try:
        value = int(token)
    except ValueError:
        raise ManifestParseError(
            f"{what} must be an integer, got '{token}'.", line_number
        ) from None
    if value < 0:
        raise ManifestParseError(f"{what} cannot be negative ({value}).", line_number)
    return value


def parse_manifest(data: bytes | str, stream_name: str | None = None) -> Manifest:
    """
    Parses manifest text into a ``Manifest``.

    Args:
        data: Raw manifest bytes (UTF-8) or already decoded text.
        stream_name: Name to use when the manifest has no ``stream`` line.

    Returns:
        The parsed, validated manifest.

    Raises:
        ManifestParseError: If the text is malformed or the tracks disagree on
        their segment count.
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ManifestParseError(f"Manifest is not valid UTF-8: {e}") from e
    else:
        text = data

    name = stream_name
    tracks: list[Track] = []
    # Header of the track being read: (filename, content_type, bandwidth, line)
    current: tuple[str, str, int, int] | None = None
    segments: list[Segment] = []

    def close_track() -> None:
        if current is None:
            return
        filename, content_type, bandwidth, header_line = current
        if not segments:
            raise ManifestParseError(
                f"Track '{filename}' has no segments.", header_line
            )
        tracks.append(Track(filename, content_type, bandwidth, tuple(segments)))

    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        keyword, _, rest = line.partition(" ")
        rest = rest.strip()

        if keyword == "stream":
            if not rest:
                raise ManifestParseError("'stream' needs a name.", line_number)
            name = rest
        elif keyword == "track":
            close_track()
            parts = rest.split(None, 2)
            if len(parts) < 3:
                raise ManifestParseError(
                    "'track' needs a filename, a bandwidth and a content type.",
                    line_number,
                )
            filename, bandwidth_token, content_type = parts
            bandwidth = _parse_int(bandwidth_token, "Bandwidth", line_number)
            if bandwidth == 0:
                raise ManifestParseError("Bandwidth must be positive.", line_number)
            if any(t.filename == filename for t in tracks):
                raise ManifestParseError(
                    f"Duplicate track '{filename}'.", line_number
                )
            current = (filename, content_type, bandwidth, line_number)
            segments = []
        elif keyword[0].isdigit() or keyword[0] == "-":
            if current is None:
                raise ManifestParseError(
                    "Segment line found before any 'track' line.", line_number
                )
            parts = line.split()
            if len(parts) != 2:
                raise ManifestParseError(
                    "Segment lines must be '<offset> <length>'.", line_number
                )
            offset = _parse_int(parts[0], "Offset", line_number)
            length = _parse_int(parts[1], "Length", line_number)
            if length == 0:
                raise ManifestParseError("Segment length must be positive.", line_number)
            segments.append(Segment(offset, length))
        else:
            raise ManifestParseError(f"Unknown directive '{keyword}'.", line_number)

    close_track()

    if not name:
        raise ManifestParseError("Manifest does not name its stream.")
    if not tracks:
        raise ManifestParseError(f"Manifest for '{name}' contains no tracks.")

    try:
        manifest = Manifest(name, tuple(tracks))
    except ValueError as e:
        raise ManifestParseError(str(e)) from e

    log.debug(
        f"Parsed manifest '{name}': {len(manifest.tracks)} tracks, "
        f"{manifest.num_segments} segments each."
    )
    return manifest
