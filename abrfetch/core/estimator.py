"""
Sliding-window throughput estimator.
"""

import math
from typing import Optional

DEFAULT_WINDOW_SIZE = 3


class ThroughputEstimator:
    """
    Averages the transfer rates of the last few segments.

    Rates are stored in a fixed ring indexed by ``segment_index % window_size``,
    so a new sample overwrites the one recorded ``window_size`` segments
    earlier. The estimate is the plain mean of the populated slots; order
    inside the window does not matter.
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE):
        if window_size < 1:
            raise ValueError(f"Window size must be at least 1, got {window_size}.")
        self.window_size = window_size
        self._slots: list[Optional[float]] = [None] * window_size

    @property
    def populated(self) -> int:
        """Number of ring slots holding a sample."""
        return sum(1 for rate in self._slots if rate is not None)

    def record(self, rate: float, segment_index: int) -> None:
        """Stores the rate (kbit/s) observed while fetching ``segment_index``."""
        if not math.isfinite(rate) or rate < 0:
            raise ValueError(f"Rate must be a finite, non-negative number, got {rate}.")
        self._slots[segment_index % self.window_size] = rate

    def clear(self, segment_index: int) -> None:
        """Empties the slot of a segment whose transfer could not be measured."""
        self._slots[segment_index % self.window_size] = None

    def estimate(self) -> float:
        """Returns the mean of the populated slots, or 0.0 if nothing was recorded."""
        # Slots stay empty for segments whose transfer could not be measured
        samples = [rate for rate in self._slots if rate is not None]
        if not samples:
            return 0.0
        return sum(samples) / len(samples)

    def reset(self) -> None:
        self._slots = [None] * self.window_size
