"""
Transpose per-sample expression rows into per-feature vectors.

Samples arrive from storage one at a time, each holding one level per
feature in feature-index order. Correlation needs the opposite layout: one
vector per feature holding one value per sample. FeatureVectorAssembler
flips the representation while the samples stream past.

Missing observations are NaN and are kept in place so that every feature
vector stays index-aligned with every other.

Memory:
    All N feature vectors are resident at once (N x S float64). This is the
    scalability limit of the correlation step; it is not a streaming design.

Examples:
    >>> assembler = FeatureVectorAssembler(3)
    >>> assembler.add([1.0, 2.0, np.nan])
    >>> assembler.add([4.0, 5.0, 6.0])
    >>> assembler.vectors()
    array([[ 1.,  4.],
           [ 2.,  5.],
           [nan,  6.]])
"""

from __future__ import annotations

from typing import Iterable

import numpy as np
from numpy.typing import ArrayLike, NDArray

__all__ = ['FeatureVectorAssembler']


class FeatureVectorAssembler:
    """
    Accumulates sample rows into a growable (features x samples) buffer.

    Sample capacity doubles when exhausted, so adding S samples costs
    amortized O(N) per sample.

    Args:
        n_features: Number of features per sample (known in advance).
        initial_capacity: Sample slots allocated up front.

    Raises:
        ValueError: If n_features is negative or initial_capacity < 1.
    """

    def __init__(self, n_features: int, initial_capacity: int = 64):
        if n_features < 0:
            raise ValueError(f"n_features must be non-negative, got {n_features}")
        if initial_capacity < 1:
            raise ValueError(f"initial_capacity must be positive, got {initial_capacity}")
        self._n_features = n_features
        self._buffer = np.empty((n_features, initial_capacity), dtype=np.float64)
        self._n_samples = 0

    @property
    def n_features(self) -> int:
        return self._n_features

    @property
    def n_samples(self) -> int:
        """Number of samples added so far."""
        return self._n_samples

    def add(self, levels: ArrayLike) -> None:
        """
        Append one sample's expression levels.

        Args:
            levels: One value per feature, in feature-index order. Any
                non-finite value is stored as NaN (missing).

        Raises:
            ValueError: If the length does not match n_features.
        """
        row = np.asarray(levels, dtype=np.float64)
        if row.ndim != 1 or row.shape[0] != self._n_features:
            raise ValueError(
                f"Sample has {row.size} levels but {self._n_features} features were expected"
            )
        if self._n_samples == self._buffer.shape[1]:
            self._grow()
        column = self._buffer[:, self._n_samples]
        column[:] = row
        column[~np.isfinite(column)] = np.nan
        self._n_samples += 1

    def extend(self, rows: Iterable[ArrayLike]) -> None:
        for row in rows:
            self.add(row)

    def _grow(self) -> None:
        capacity = self._buffer.shape[1] * 2
        grown = np.empty((self._n_features, capacity), dtype=np.float64)
        grown[:, :self._n_samples] = self._buffer[:, :self._n_samples]
        self._buffer = grown

    def vector(self, i: int) -> NDArray[np.float64]:
        """Expression vector for feature i (one value per sample, a view)."""
        if not 0 <= i < self._n_features:
            raise IndexError(f"feature index {i} out of range [0, {self._n_features})")
        return self._buffer[i, :self._n_samples]

    def vectors(self) -> NDArray[np.float64]:
        """All feature vectors as a contiguous (n_features, n_samples) array."""
        return np.ascontiguousarray(self._buffer[:, :self._n_samples])
