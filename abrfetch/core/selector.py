"""
Bandwidth-proximity track selection.
"""

from collections.abc import Sequence

from abrfetch.models.manifest import Track


def select_track(estimate_kbps: float, tracks: Sequence[Track]) -> Track:
    """
    Picks the track whose declared bandwidth is closest to the estimate.

    This is a nearest-match policy, not "highest affordable": the chosen
    track may declare more bandwidth than the estimate. On ties the track
    that comes first in manifest order wins.

    Raises:
        ValueError: If ``tracks`` is empty.
    """
    if not tracks:
        raise ValueError("Cannot select a track from an empty track list.")

    best = tracks[0]
    best_distance = abs(best.avg_bandwidth_kbps - estimate_kbps)
    for track in tracks[1:]:
        distance = abs(track.avg_bandwidth_kbps - estimate_kbps)
        if distance < best_distance:
            best, best_distance = track, distance
    return best
