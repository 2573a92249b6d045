"""
Adapter to the agglomerative feature-clustering collaborator.

The engine does not implement the merge algorithm. It hands similarity
triples and a merge threshold to a collaborator and receives a partition of
feature ids back. CompleteLinkClusterer fulfils that contract with SciPy's
hierarchical clustering: complete linkage on distance (1 - score), cut so
that every pair inside a cluster scores at least the threshold.

Pairs that were never reported are treated as score 0.0 (distance 1).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Protocol, Sequence

import numpy as np
from scipy.cluster.hierarchy import fcluster, linkage

__all__ = [
    'ClusteringCollaborator',
    'CompleteLinkClusterer',
    'name_clusters',
]

logger = logging.getLogger(__name__)


class ClusteringCollaborator(Protocol):
    """Receives similarities, then partitions the features."""

    def add_similarity(self, feature_a: str, feature_b: str, score: float) -> None:
        ...

    def merge(self, threshold: float) -> List[List[str]]:
        ...


def _check_threshold(threshold: float) -> None:
    if not (0.0 < threshold <= 1.0):
        raise ValueError(f"Merge threshold must be in (0, 1], got {threshold}")


class CompleteLinkClusterer:
    """
    Complete-link clustering over a condensed distance vector.

    Memory is one float64 per feature pair (n * (n - 1) / 2).

    Args:
        feature_ids: All features that can appear in similarities.
    """

    def __init__(self, feature_ids: Sequence[str]):
        self.feature_ids = list(feature_ids)
        self._index = {fid: i for i, fid in enumerate(self.feature_ids)}
        if len(self._index) != len(self.feature_ids):
            raise ValueError("Feature IDs must be unique")
        n = len(self.feature_ids)
        self._distances = np.ones(n * (n - 1) // 2, dtype=np.float64)

    def _position(self, i: int, j: int) -> int:
        if i > j:
            i, j = j, i
        n = len(self.feature_ids)
        return n * i - i * (i + 1) // 2 + (j - i - 1)

    def add_similarity(self, feature_a: str, feature_b: str, score: float) -> None:
        try:
            i = self._index[feature_a]
            j = self._index[feature_b]
        except KeyError as e:
            raise KeyError(f"Unknown feature {e.args[0]} in similarity") from None
        if i == j:
            return
        self._distances[self._position(i, j)] = 1.0 - score

    def merge(self, threshold: float) -> List[List[str]]:
        """
        Partition the features.

        Args:
            threshold: Minimum score every pair within a cluster must reach.

        Returns:
            Clusters as lists of feature ids, largest first (ties broken by
            first member); members keep feature-index order.
        """
        _check_threshold(threshold)
        n = len(self.feature_ids)
        if n == 0:
            return []
        if n == 1:
            return [list(self.feature_ids)]

        tree = linkage(self._distances, method='complete')
        labels = fcluster(tree, t=1.0 - threshold, criterion='distance')

        groups: Dict[int, List[str]] = {}
        for fid, label in zip(self.feature_ids, labels):
            groups.setdefault(int(label), []).append(fid)
        clusters = sorted(groups.values(), key=lambda members: (-len(members), members[0]))
        logger.info(
            f"{len(clusters)} clusters formed from {n} features at threshold {threshold}."
        )
        return clusters


def name_clusters(clusters: Sequence[Sequence[str]], prefix: str = "CL") -> Dict[str, List[str]]:
    """Number clusters CL0001, CL0002, ... in the order given."""
    return {f"{prefix}{k:04d}": list(members) for k, members in enumerate(clusters, start=1)}
