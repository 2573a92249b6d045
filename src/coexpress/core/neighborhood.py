"""
Bounded, sorted neighbor lists.

A Neighborhood keeps the K strongest correlated partners of one feature,
strongest first. Candidates weaker than everything kept in a full
neighborhood are discarded; a stronger candidate evicts the weakest entry.

Ordering is score descending, then neighbor id ascending on ties. The list
is fully sorted and never longer than K after every merge.

Note:
    Candidate ids are not deduplicated. Merging the same id twice (even with
    a different score) stores two entries. Callers that feed each unordered
    pair once per direction never trigger this.

Examples:
    >>> hood = Neighborhood(3)
    >>> for fid, score in [("B", 0.9), ("A", 1.0), ("C", 0.8), ("D", 0.95)]:
    ...     hood.merge(fid, score)
    >>> hood.ids()
    ['A', 'D', 'B']
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

__all__ = ['Neighbor', 'Neighborhood']


@dataclass(frozen=True)
class Neighbor:
    """One retained partner and its correlation."""

    id: str
    score: float

    def precedes(self, other: Neighbor) -> bool:
        """True if this neighbor sorts strictly before `other`."""
        if self.score != other.score:
            return self.score > other.score
        return self.id < other.id


class Neighborhood:
    """
    Fixed-capacity neighbor list for one feature.

    Each merge is O(K): a linear scan for the insertion point plus a shift.
    K is small (tens), so this beats a heap for the access pattern here.

    Args:
        max_size: Capacity K.

    Raises:
        ValueError: If max_size is not positive.
    """

    def __init__(self, max_size: int):
        if max_size <= 0:
            raise ValueError(f"Neighborhood size must be positive, got {max_size}")
        self._max = max_size
        self._neighbors: List[Neighbor] = []

    @property
    def max_size(self) -> int:
        return self._max

    def merge(self, neighbor_id: str, score: float) -> None:
        """
        Offer a candidate neighbor.

        Args:
            neighbor_id: ID of the candidate feature.
            score: Its correlation with this neighborhood's feature.
        """
        candidate = Neighbor(neighbor_id, float(score))
        n = len(self._neighbors)
        i = 0
        while i < n and not candidate.precedes(self._neighbors[i]):
            i += 1
        if i >= n:
            # Belongs past the end: keep only if there is room.
            if n < self._max:
                self._neighbors.append(candidate)
        else:
            self._neighbors.insert(i, candidate)
            if len(self._neighbors) > self._max:
                self._neighbors.pop()

    def neighbors(self) -> List[Neighbor]:
        """Current neighbors, strongest first (a copy)."""
        return list(self._neighbors)

    def ids(self) -> List[str]:
        return [n.id for n in self._neighbors]

    def size(self) -> int:
        return len(self._neighbors)

    def __len__(self) -> int:
        return len(self._neighbors)

    def __repr__(self) -> str:
        inner = ", ".join(f"{n.id}({n.score:.3f})" for n in self._neighbors)
        return f"Neighborhood(max={self._max}, [{inner}])"
