"""
Vectorized running statistics over a fixed set of features.

One RunningStats holds a count, sum and sum of squares per feature, so the
mean (and variance) of every feature can be reconstructed at any time.
Accumulation is a plain sum, which makes the result independent of the
order observations arrive in (up to floating-point rounding).
"""

from __future__ import annotations

import threading

import numpy as np
from numpy.typing import ArrayLike, NDArray

__all__ = ['RunningStats']


class RunningStats:
    """
    Per-feature count / sum / sum-of-squares accumulator.

    Non-finite observations are skipped, so each feature's count is the
    number of finite values it has seen.

    Args:
        n_features: Number of features tracked.
    """

    def __init__(self, n_features: int):
        self.n_features = n_features
        self.count = np.zeros(n_features, dtype=np.int64)
        self.total = np.zeros(n_features, dtype=np.float64)
        self.total_sq = np.zeros(n_features, dtype=np.float64)
        # Serializes whole-record updates from different threads.
        self.lock = threading.Lock()

    def add(self, values: ArrayLike, start: int = 0) -> None:
        """
        Add observations for features [start, start + len(values)).

        Disjoint slices may be added concurrently from different threads.
        """
        values = np.asarray(values, dtype=np.float64)
        stop = start + values.shape[0]
        if start < 0 or stop > self.n_features:
            raise ValueError(
                f"Slice [{start}, {stop}) is outside [0, {self.n_features})"
            )
        finite = np.isfinite(values)
        clean = np.where(finite, values, 0.0)
        self.count[start:stop] += finite
        self.total[start:stop] += clean
        self.total_sq[start:stop] += clean * clean

    @property
    def mean(self) -> NDArray[np.float64]:
        """Per-feature mean; NaN for features with no observations."""
        with np.errstate(invalid='ignore', divide='ignore'):
            return np.where(self.count > 0, self.total / self.count, np.nan)

    @property
    def variance(self) -> NDArray[np.float64]:
        """Per-feature sample variance (ddof=1); NaN with fewer than 2 values."""
        with np.errstate(invalid='ignore', divide='ignore'):
            mean = self.total / self.count
            var = (self.total_sq - self.count * mean * mean) / (self.count - 1)
        return np.where(self.count > 1, np.maximum(var, 0.0), np.nan)

    def observed(self) -> NDArray[np.bool_]:
        """Mask of features with at least one finite observation."""
        return self.count > 0
