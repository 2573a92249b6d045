"""Tests for the bounded, score-ordered neighbor list."""

import pytest

from coexpress.core.neighborhood import Neighbor, Neighborhood


def scores(hood):
    return [(n.id, n.score) for n in hood.neighbors()]


class TestNeighborhoodOrdering:
    """Entries are kept strongest first, ties by ascending id."""

    def test_eviction_of_weakest(self):
        hood = Neighborhood(3)
        hood.merge("B", 0.9)
        hood.merge("A", 1.0)
        hood.merge("C", 0.8)
        assert scores(hood) == [("A", 1.0), ("B", 0.9), ("C", 0.8)]

        hood.merge("D", 0.95)
        assert scores(hood) == [("A", 1.0), ("D", 0.95), ("B", 0.9)]
        assert hood.size() == 3

    def test_weaker_than_every_entry_is_ignored_when_full(self):
        hood = Neighborhood(3)
        for fid, score in [("A", 1.0), ("D", 0.95), ("B", 0.9)]:
            hood.merge(fid, score)
        hood.merge("Z", 0.1)
        assert hood.ids() == ["A", "D", "B"]

    def test_weak_candidate_appended_when_not_full(self):
        hood = Neighborhood(3)
        hood.merge("A", 0.9)
        hood.merge("B", 0.1)
        assert hood.ids() == ["A", "B"]

    def test_ties_broken_by_id(self):
        hood = Neighborhood(3)
        hood.merge("c", 0.5)
        hood.merge("a", 0.5)
        hood.merge("b", 0.5)
        assert hood.ids() == ["a", "b", "c"]

        # A tie with the last entry loses when its id sorts later.
        hood.merge("d", 0.5)
        assert hood.ids() == ["a", "b", "c"]
        hood.merge("B", 0.5)
        assert hood.ids() == ["B", "a", "b"]

    def test_larger_sequence(self):
        """Five-slot neighborhood fed a longer mixed stream."""
        hood = Neighborhood(5)
        for fid, score in [("f1", 0.5), ("f2", 0.7), ("f3", 0.6), ("f4", 0.9),
                           ("f5", 0.4), ("f6", 0.8), ("f7", 0.3), ("f8", 0.95)]:
            hood.merge(fid, score)
        assert hood.ids() == ["f8", "f4", "f6", "f2", "f3"]
        assert len(hood) == 5

    def test_never_exceeds_capacity(self, rng):
        hood = Neighborhood(4)
        for k, score in enumerate(rng.uniform(-1, 1, size=200)):
            hood.merge(f"f{k}", score)
            assert hood.size() <= 4
        kept = [n.score for n in hood.neighbors()]
        assert kept == sorted(kept, reverse=True)


class TestNeighborhoodBehavior:

    def test_duplicates_are_not_merged(self):
        """Offering the same id twice keeps both entries."""
        hood = Neighborhood(3)
        hood.merge("A", 0.9)
        hood.merge("A", 0.9)
        assert hood.ids() == ["A", "A"]

    def test_neighbors_returns_a_copy(self):
        hood = Neighborhood(2)
        hood.merge("A", 0.9)
        hood.neighbors().clear()
        assert hood.size() == 1

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            Neighborhood(0)
        with pytest.raises(ValueError):
            Neighborhood(-3)

    def test_neighbor_precedes(self):
        assert Neighbor("b", 0.9).precedes(Neighbor("a", 0.8))
        assert Neighbor("a", 0.8).precedes(Neighbor("b", 0.8))
        assert not Neighbor("b", 0.8).precedes(Neighbor("b", 0.8))
