"""
Pairwise Pearson correlation over feature vectors with missing values.

For every unordered feature pair (i, j), i < j, the coefficient is computed
only over the sample positions where BOTH vectors hold a finite value. Each
pair is emitted exactly once, in canonical order (feature i first), to a
similarity sink.

Undefined correlations:
    A pair with fewer than ``min_overlap`` shared finite positions (default
    3, i.e. "more than 2"), or whose filtered values have zero variance, has
    no defined coefficient. It is logged as a warning and scored 0.0, the
    undefined sentinel.

Parallelism:
    Cost is O(N^2 * S). The OUTER feature loop is partitioned across a
    thread pool, so each task is O(N * S) work. Within a task the inner loop
    is vectorized with NumPy (which releases the GIL), in blocks of rows to
    bound the temporary memory. Emission to the shared sink and the progress
    counter are serialized by one lock; emission order is unspecified.

Memory:
    All N vectors must be resident (N x S float64). This is the dominant
    memory cost of a run.

Examples:
    >>> from coexpress.similarity import PairCollector
    >>> vectors = np.array([[1., 2., 3., 4.], [2., 4., 6., 8.], [4., 3., 2., np.nan]])
    >>> engine = CorrelationEngine(["f1", "f2", "f3"], CorrelationConfig(progress=False))
    >>> collector = PairCollector()
    >>> engine.run(vectors, collector)
    3
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray
from tqdm import tqdm

from coexpress.config import DEFAULT_MIN_OVERLAP, CorrelationConfig

if TYPE_CHECKING:
    from coexpress.similarity.sinks import SimilaritySink

__all__ = [
    'UNDEFINED_SCORE',
    'pearson_overlap',
    'correlate_row',
    'CorrelationEngine',
]

logger = logging.getLogger(__name__)

# Score recorded for pairs whose correlation is undefined.
UNDEFINED_SCORE = 0.0

# Rows correlated per vectorized block inside one task.
_ROW_BLOCK = 256


def _pearson_or_nan(x: NDArray, y: NDArray, min_overlap: int) -> Tuple[float, int]:
    mask = np.isfinite(x) & np.isfinite(y)
    n = int(mask.sum())
    if n < min_overlap:
        return np.nan, n
    xs = x[mask]
    ys = y[mask]
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    with np.errstate(invalid='ignore', divide='ignore'):
        r = np.dot(dx, dy) / np.sqrt(np.dot(dx, dx) * np.dot(dy, dy))
    if not np.isfinite(r):
        return np.nan, n
    return float(min(1.0, max(-1.0, r))), n


def pearson_overlap(
    x: ArrayLike,
    y: ArrayLike,
    min_overlap: int = DEFAULT_MIN_OVERLAP,
) -> float:
    """
    Pearson correlation restricted to positions finite in both vectors.

    Args:
        x: First expression vector (NaN/inf = missing).
        y: Second expression vector, same length.
        min_overlap: Fewest shared finite positions for a defined result.

    Returns:
        Coefficient in [-1, 1], or 0.0 when undefined (too few shared
        values, or zero variance in either filtered vector).

    Raises:
        ValueError: If the vectors differ in length.

    Examples:
        >>> round(pearson_overlap([1, 2, 3, np.nan], [2, 4, 7, 1]), 4)
        0.9934
        >>> pearson_overlap([1, np.nan, 3], [1, 2, np.nan])
        0.0
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.shape != y.shape or x.ndim != 1:
        raise ValueError(f"Vectors must be 1D and equal length, got {x.shape} and {y.shape}")
    r, _ = _pearson_or_nan(x, y, min_overlap)
    return UNDEFINED_SCORE if np.isnan(r) else r


def correlate_row(
    x: NDArray[np.float64],
    block: NDArray[np.float64],
    min_overlap: int = DEFAULT_MIN_OVERLAP,
) -> Tuple[NDArray[np.float64], NDArray[np.int_]]:
    """
    Correlate one vector against every row of a block, pairwise-filtered.

    Args:
        x: Vector of length S.
        block: (m, S) array of partner vectors.
        min_overlap: Fewest shared finite positions for a defined result.

    Returns:
        (scores, overlaps): scores has NaN where the correlation is
        undefined; overlaps holds the shared finite count per row.
    """
    mask = np.isfinite(block) & np.isfinite(x)
    overlaps = mask.sum(axis=1)
    with np.errstate(invalid='ignore', divide='ignore'):
        mean_x = np.where(mask, x, 0.0).sum(axis=1) / overlaps
        mean_y = np.where(mask, block, 0.0).sum(axis=1) / overlaps
        dx = np.where(mask, x - mean_x[:, None], 0.0)
        dy = np.where(mask, block - mean_y[:, None], 0.0)
        cov = np.einsum('ij,ij->i', dx, dy)
        ss_x = np.einsum('ij,ij->i', dx, dx)
        ss_y = np.einsum('ij,ij->i', dy, dy)
        scores = cov / np.sqrt(ss_x * ss_y)
    scores[overlaps < min_overlap] = np.nan
    scores[~np.isfinite(scores)] = np.nan
    np.clip(scores, -1.0, 1.0, out=scores)
    return scores, overlaps


class CorrelationEngine:
    """
    Computes and emits all pairwise feature correlations.

    Args:
        feature_ids: Feature IDs in feature-index order (row order of the
            vectors passed to run()).
        config: Correlation settings; defaults to CorrelationConfig().

    Example:
        >>> engine = CorrelationEngine(feature_ids, CorrelationConfig(n_workers=8))
        >>> n = engine.run(assembler.vectors(), NeighborhoodBuilder())
    """

    def __init__(
        self,
        feature_ids: Sequence[str],
        config: Optional[CorrelationConfig] = None,
    ):
        self.feature_ids = list(feature_ids)
        self.config = config or CorrelationConfig()
        self._lock = threading.Lock()
        self._compare_count = 0

    @property
    def compare_count(self) -> int:
        """Comparisons emitted by the current or last run."""
        return self._compare_count

    def run(self, vectors: ArrayLike, sink: SimilaritySink) -> int:
        """
        Emit one score for every unordered feature pair.

        Args:
            vectors: (n_features, n_samples) array in feature-index order.
            sink: Receives add_similarity(id_a, id_b, score) calls. Calls
                are serialized, so the sink need not be thread-safe.

        Returns:
            Number of comparisons emitted (n * (n - 1) / 2).

        Raises:
            ValueError: If the vector matrix does not match feature_ids.
            Exception: Any error raised by the sink aborts the run.
        """
        vectors = np.asarray(vectors, dtype=np.float64)
        n = len(self.feature_ids)
        if vectors.ndim != 2 or vectors.shape[0] != n:
            raise ValueError(
                f"Expected vectors of shape ({n}, n_samples), got {vectors.shape}"
            )

        self._compare_count = 0
        logger.info(
            f"Computing correlations for {n} features over {vectors.shape[1]} samples "
            f"with {self.config.n_workers} workers."
        )
        if n < 2:
            return 0

        with ThreadPoolExecutor(max_workers=self.config.n_workers) as executor:
            futures = [
                executor.submit(self._compare_row, vectors, i, sink)
                for i in range(n - 1)
            ]
            completed = as_completed(futures)
            if self.config.progress:
                completed = tqdm(completed, total=len(futures),
                                 desc="Computing correlations", unit="feature")
            try:
                for future in completed:
                    future.result()
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        logger.info(f"{self._compare_count} comparisons computed.")
        return self._compare_count

    def _compare_row(self, vectors: NDArray[np.float64], i: int, sink: SimilaritySink) -> None:
        """Correlate feature i with every later feature and emit the results."""
        scores, overlaps = self._row_scores(vectors, i)
        fid_i = self.feature_ids[i]
        with self._lock:
            for offset in range(scores.shape[0]):
                j = i + 1 + offset
                self._store(sink, fid_i, self.feature_ids[j], scores[offset], overlaps[offset])

    def _row_scores(self, vectors: NDArray[np.float64], i: int):
        min_overlap = self.config.min_overlap
        x = vectors[i]
        n = vectors.shape[0]
        try:
            parts = [
                correlate_row(x, vectors[start:min(start + _ROW_BLOCK, n)], min_overlap)
                for start in range(i + 1, n, _ROW_BLOCK)
            ]
            return (np.concatenate([p[0] for p in parts]),
                    np.concatenate([p[1] for p in parts]))
        except (ValueError, FloatingPointError, MemoryError) as e:
            logger.warning(
                f"Vectorized correlation failed for {self.feature_ids[i]} "
                f"({type(e).__name__}: {e}); falling back to pairwise computation."
            )
        scores = np.full(n - i - 1, np.nan)
        overlaps = np.zeros(n - i - 1, dtype=int)
        for j in range(i + 1, n):
            try:
                scores[j - i - 1], overlaps[j - i - 1] = _pearson_or_nan(
                    x, vectors[j], min_overlap
                )
            except (ValueError, FloatingPointError) as e:
                logger.warning(
                    f"Correlation failed for {self.feature_ids[i]} and "
                    f"{self.feature_ids[j]}: {e}"
                )
        return scores, overlaps

    def _store(
        self,
        sink: SimilaritySink,
        fid_i: str,
        fid_j: str,
        score: float,
        overlap: int,
    ) -> None:
        """Record one result. Caller holds the lock."""
        if not np.isfinite(score):
            logger.warning(
                "Could not compute correlation between %s and %s (%d shared values).",
                fid_i, fid_j, overlap,
            )
            score = UNDEFINED_SCORE
        sink.add_similarity(fid_i, fid_j, float(score))
        self._compare_count += 1
        if self._compare_count % self.config.log_interval == 0:
            logger.info("%d comparisons computed.", self._compare_count)
