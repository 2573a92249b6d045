"""
Per-feature expression baselines.

A baseline computer receives the RNA samples of one genome, one record at a
time, and finally produces one baseline value per feature. The baseline is
the "typical" expression level used as a reference point downstream.

Methods:
    WEIGHTED: Each sample cluster (an externally computed grouping of
        similar samples) gets equal influence regardless of its size. The
        mean of every cluster is accumulated per feature, and the baseline
        is the trimean of the cluster means:

            trimean = (P25 + 2 * P50 + P75) / 4

        With only one or two cluster means available the plain mean is used
        instead; with none the baseline is NaN (unknown, not zero).
        Unclustered samples are ignored.

    MEAN: Plain mean of every finite value over all samples, clustered or
        not. Over-sampled conditions dominate this estimate; it is kept as
        the reference the weighted method improves on.

Percentiles:
    Percentiles use numpy's "weibull" definition by default: percentile p
    sits at rank p * (n + 1) of the sorted values, interpolated linearly
    between neighbors and clamped to the smallest/largest value. For cluster
    means [1, 2, 4, 8, 16] this gives P25 = 1.5, P50 = 4, P75 = 12 and a
    trimean of 5.375 (the "linear" method would give 4.5).

Order independence:
    Cluster statistics are sums and counts, so the baselines do not depend
    on the order in which records are processed.

Examples:
    >>> computer = create_baseline_computer(2, BaselineConfig())
    >>> computer.process_record("CL1", [10.0, 1.0])
    >>> computer.process_record("CL2", [30.0, np.nan])
    >>> computer.process_record(None, [500.0, 500.0])   # unclustered: ignored
    >>> computer.get_baselines()
    array([20.,  1.])
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, Optional, Type

import numpy as np
from numpy.typing import ArrayLike, NDArray

from coexpress.config import BaselineConfig, BaselineMethod
from coexpress.stats.running import RunningStats

__all__ = [
    'trimean',
    'summarize_cluster_means',
    'BaselineComputer',
    'WeightedBaselineComputer',
    'MeanBaselineComputer',
    'create_baseline_computer',
]

logger = logging.getLogger(__name__)


def trimean(values: ArrayLike, method: str = "weibull") -> float:
    """
    Tukey's trimean, (P25 + 2 * P50 + P75) / 4, of the finite values.

    Args:
        values: 1D values; non-finite entries are ignored.
        method: numpy percentile method.

    Returns:
        The trimean, or NaN if no finite values remain.

    Examples:
        >>> trimean([10, 20, 30, 40, 50])
        30.0
        >>> trimean([1, 2, 4, 8, 16])
        5.375
    """
    values = np.asarray(values, dtype=np.float64)
    values = values[np.isfinite(values)]
    if values.size == 0:
        return float('nan')
    p25, p50, p75 = np.percentile(values, [25.0, 50.0, 75.0], method=method)
    return float((p25 + 2.0 * p50 + p75) / 4.0)


def summarize_cluster_means(
    means: NDArray[np.float64],
    method: str = "weibull",
) -> NDArray[np.float64]:
    """
    Reduce a (n_clusters, n_features) matrix of cluster means to baselines.

    NaN entries mark clusters with no observation for that feature.

    Rules per feature (column), by number of available cluster means k:
        k == 0: NaN
        k in (1, 2): arithmetic mean
        k >= 3: trimean
    """
    means = np.asarray(means, dtype=np.float64)
    if means.ndim != 2:
        raise ValueError(f"means must be 2D (clusters x features), got shape {means.shape}")
    n_features = means.shape[1]
    baselines = np.full(n_features, np.nan)
    if means.shape[0] == 0:
        return baselines

    available = np.isfinite(means).sum(axis=0)

    few = (available >= 1) & (available <= 2)
    if few.any():
        baselines[few] = np.nanmean(means[:, few], axis=0)

    many = available >= 3
    if many.any():
        p25, p50, p75 = np.nanpercentile(
            means[:, many], [25.0, 50.0, 75.0], axis=0, method=method
        )
        baselines[many] = (p25 + 2.0 * p50 + p75) / 4.0

    return baselines


class BaselineComputer(ABC):
    """
    Base class for baseline computers.

    Subclasses accumulate data in process_record() and reduce it in
    get_baselines(). Computers may own a thread pool, so use them as
    context managers (or call close()).

    Args:
        n_features: Length of every expression record.
        config: Baseline settings.
    """

    def __init__(self, n_features: int, config: Optional[BaselineConfig] = None):
        if n_features < 0:
            raise ValueError(f"n_features must be non-negative, got {n_features}")
        self.n_features = n_features
        self.config = config or BaselineConfig()
        self.records_used = 0
        self.records_skipped = 0

    @abstractmethod
    def process_record(self, cluster_id: Optional[str], levels: ArrayLike) -> None:
        """Accumulate one sample's expression levels."""

    @abstractmethod
    def get_baselines(self) -> NDArray[np.float64]:
        """Return one baseline per feature (NaN = unknown)."""

    def _check_levels(self, levels: ArrayLike) -> NDArray[np.float64]:
        levels = np.asarray(levels, dtype=np.float64)
        if levels.ndim != 1 or levels.shape[0] != self.n_features:
            raise ValueError(
                f"Record has {levels.size} levels but {self.n_features} features were expected"
            )
        return levels

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class WeightedBaselineComputer(BaselineComputer):
    """
    Trimean of per-cluster means; every sample cluster weighs the same.

    Thread safety:
        process_record() may be called from several threads. Creating a
        cluster's accumulator is atomic (get-or-create under a lock), and
        records for the same cluster are serialized by that accumulator's
        own lock; records for different clusters never contend.

    With config.n_workers > 1, each record's feature range is split into
    disjoint slices that are accumulated in parallel.
    """

    def __init__(self, n_features: int, config: Optional[BaselineConfig] = None):
        super().__init__(n_features, config)
        self._clusters: Dict[str, RunningStats] = {}
        self._clusters_lock = threading.Lock()
        self._slices = self._plan_slices()
        self._executor: Optional[ThreadPoolExecutor] = None
        if len(self._slices) > 1:
            self._executor = ThreadPoolExecutor(max_workers=self.config.n_workers)

    def _plan_slices(self):
        n_slices = min(self.config.n_workers, max(1, self.n_features // self.config.min_slice))
        bounds = np.linspace(0, self.n_features, n_slices + 1).astype(int)
        return [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]

    @property
    def n_clusters(self) -> int:
        return len(self._clusters)

    def cluster_stats(self, cluster_id: str) -> RunningStats:
        """Accumulator for one cluster (KeyError if never seen)."""
        return self._clusters[cluster_id]

    def _stats_for(self, cluster_id: str) -> RunningStats:
        stats = self._clusters.get(cluster_id)
        if stats is None:
            with self._clusters_lock:
                stats = self._clusters.get(cluster_id)
                if stats is None:
                    stats = RunningStats(self.n_features)
                    self._clusters[cluster_id] = stats
        return stats

    def process_record(self, cluster_id: Optional[str], levels: ArrayLike) -> None:
        levels = self._check_levels(levels)
        if cluster_id is None:
            # Unclustered samples are suspicious or not yet processed.
            with self._clusters_lock:
                self.records_skipped += 1
            logger.debug("Skipping record without a cluster.")
            return
        stats = self._stats_for(cluster_id)
        with stats.lock:
            if self._executor is None:
                stats.add(levels)
            else:
                futures = [
                    self._executor.submit(stats.add, levels[start:stop], start)
                    for start, stop in self._slices
                ]
                done, _ = wait(futures)
                for future in done:
                    future.result()
            self.records_used += 1

    def get_baselines(self) -> NDArray[np.float64]:
        if not self._clusters:
            logger.warning("No clustered samples were processed; all baselines are unknown.")
            return np.full(self.n_features, np.nan)
        means = np.vstack([stats.mean for stats in self._clusters.values()])
        logger.info(
            f"Summarizing {self.n_features} features over {len(self._clusters)} sample clusters."
        )
        return summarize_cluster_means(means, self.config.percentile_method)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


class MeanBaselineComputer(BaselineComputer):
    """Unweighted mean of every finite value; cluster assignment is ignored."""

    def __init__(self, n_features: int, config: Optional[BaselineConfig] = None):
        super().__init__(n_features, config)
        self._stats = RunningStats(n_features)

    def process_record(self, cluster_id: Optional[str], levels: ArrayLike) -> None:
        levels = self._check_levels(levels)
        with self._stats.lock:
            self._stats.add(levels)
            self.records_used += 1

    def get_baselines(self) -> NDArray[np.float64]:
        return self._stats.mean


_COMPUTERS: Dict[BaselineMethod, Type[BaselineComputer]] = {
    BaselineMethod.WEIGHTED: WeightedBaselineComputer,
    BaselineMethod.MEAN: MeanBaselineComputer,
}


def create_baseline_computer(
    n_features: int,
    config: Optional[BaselineConfig] = None,
) -> BaselineComputer:
    """Build the baseline computer selected by config.method."""
    config = config or BaselineConfig()
    computer_cls = _COMPUTERS[config.method]
    logger.debug(f"Using {computer_cls.__name__} for {n_features} features.")
    return computer_cls(n_features, config)
