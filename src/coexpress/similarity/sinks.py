"""
Consumers of pairwise similarity scores.

The correlation engine emits (feature_a, feature_b, score) triples to any
object with an ``add_similarity`` method. The engine serializes its calls,
so sinks here are not internally locked.

Sinks:
    PairCollector: keeps every pair in memory
    NeighborhoodBuilder: keeps each feature's strongest partners
    SinkGroup: fans each pair out to several sinks
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from coexpress.config import NeighborhoodConfig
from coexpress.core.neighborhood import Neighborhood

__all__ = [
    'SimilarityPair',
    'SimilaritySink',
    'PairCollector',
    'NeighborhoodBuilder',
    'SinkGroup',
    'feed_pairs',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityPair:
    """One scored, unordered feature pair (feature_a precedes feature_b)."""

    feature_a: str
    feature_b: str
    score: float


class SimilaritySink(Protocol):
    """Anything that accepts similarity triples."""

    def add_similarity(self, feature_a: str, feature_b: str, score: float) -> None:
        ...


def feed_pairs(pairs: Iterable[SimilarityPair], sink: SimilaritySink) -> int:
    """Replay stored pairs into a sink; returns the number fed."""
    count = 0
    for pair in pairs:
        sink.add_similarity(pair.feature_a, pair.feature_b, pair.score)
        count += 1
    return count


class PairCollector:
    """In-memory list of every pair received."""

    def __init__(self):
        self.pairs: List[SimilarityPair] = []

    def add_similarity(self, feature_a: str, feature_b: str, score: float) -> None:
        self.pairs.append(SimilarityPair(feature_a, feature_b, score))

    def as_dict(self) -> Dict[Tuple[str, str], float]:
        """Scores keyed by (feature_a, feature_b) as emitted."""
        return {(p.feature_a, p.feature_b): p.score for p in self.pairs}

    def __iter__(self) -> Iterator[SimilarityPair]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)


class NeighborhoodBuilder:
    """
    Builds one bounded Neighborhood per feature from a stream of pairs.

    Each kept pair updates two neighborhoods (a gains b, b gains a).
    Neighborhoods are created lazily on a feature's first kept partner, so
    features without any partner at or above min_correlation have none.

    Args:
        config: Capacity and minimum correlation.

    Example:
        >>> builder = NeighborhoodBuilder(NeighborhoodConfig(max_neighbors=2, min_correlation=0.5))
        >>> builder.add_similarity("a", "b", 0.9)
        >>> builder.add_similarity("a", "c", 0.2)
        >>> dict(builder.neighbor_strings())
        {'a': 'b', 'b': 'a'}
    """

    def __init__(self, config: Optional[NeighborhoodConfig] = None):
        self.config = config or NeighborhoodConfig()
        self._hoods: Dict[str, Neighborhood] = {}
        self.seen = 0
        self.kept = 0

    def add_similarity(self, feature_a: str, feature_b: str, score: float) -> None:
        self.seen += 1
        if feature_a == feature_b:
            logger.warning(f"Ignoring self-similarity for {feature_a}.")
            return
        if score >= self.config.min_correlation:
            self._merge(feature_a, feature_b, score)
            self._merge(feature_b, feature_a, score)
            self.kept += 1
        if self.seen % 100000 == 0:
            logger.info(f"{self.seen} correlations processed, {self.kept} kept.")

    def _merge(self, feature_id: str, neighbor_id: str, score: float) -> None:
        hood = self._hoods.get(feature_id)
        if hood is None:
            hood = Neighborhood(self.config.max_neighbors)
            self._hoods[feature_id] = hood
        hood.merge(neighbor_id, score)

    def neighborhood(self, feature_id: str) -> Optional[Neighborhood]:
        return self._hoods.get(feature_id)

    def neighborhoods(self) -> Dict[str, Neighborhood]:
        return dict(self._hoods)

    def neighbor_strings(self) -> Iterator[Tuple[str, str]]:
        """(feature_id, comma-joined neighbor ids strongest first), non-empty only."""
        for feature_id, hood in self._hoods.items():
            if hood.size() > 0:
                yield feature_id, ",".join(hood.ids())

    def __len__(self) -> int:
        return len(self._hoods)


class SinkGroup:
    """Forwards every pair to each member sink, in order."""

    def __init__(self, *sinks: SimilaritySink):
        self.sinks = [s for s in sinks if s is not None]

    def add_similarity(self, feature_a: str, feature_b: str, score: float) -> None:
        for sink in self.sinks:
            sink.add_similarity(feature_a, feature_b, score)
