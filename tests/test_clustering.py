"""Tests for the complete-link clustering adapter."""

import pytest

from coexpress.similarity.clustering import CompleteLinkClusterer, name_clusters


def clusterer_with(pairs, ids=("a", "b", "c", "d")):
    clusterer = CompleteLinkClusterer(ids)
    for a, b, score in pairs:
        clusterer.add_similarity(a, b, score)
    return clusterer


class TestCompleteLinkClusterer:
    """Every pair inside a cluster must reach the threshold."""

    def test_two_tight_groups(self):
        clusterer = clusterer_with([
            ("a", "b", 0.9),
            ("c", "d", 0.8),
            ("a", "c", 0.75),
        ])
        # b-c was never reported, so {a, b} and {c, d} cannot merge.
        assert clusterer.merge(0.7) == [["a", "b"], ["c", "d"]]

    def test_threshold_splits_weaker_pairs(self):
        clusterer = clusterer_with([("a", "b", 0.9), ("c", "d", 0.8)])
        assert clusterer.merge(0.85) == [["a", "b"], ["c"], ["d"]]

    def test_chain_is_not_merged(self):
        """Complete linkage: a-b and b-c strong but a-c weak stays split."""
        clusterer = clusterer_with(
            [("a", "b", 0.95), ("b", "c", 0.9), ("a", "c", 0.1)], ids=("a", "b", "c")
        )
        clusters = clusterer.merge(0.8)
        assert ["a", "b"] in clusters
        assert ["c"] in clusters

    def test_perfect_scores_at_threshold_one(self):
        clusterer = clusterer_with([("a", "b", 1.0)])
        assert clusterer.merge(1.0) == [["a", "b"], ["c"], ["d"]]

    def test_degenerate_sizes(self):
        assert CompleteLinkClusterer([]).merge(0.5) == []
        assert CompleteLinkClusterer(["x"]).merge(0.5) == [["x"]]

    def test_unknown_feature(self):
        clusterer = CompleteLinkClusterer(["a", "b"])
        with pytest.raises(KeyError):
            clusterer.add_similarity("a", "zz", 0.9)

    def test_duplicate_ids(self):
        with pytest.raises(ValueError):
            CompleteLinkClusterer(["a", "a"])

    @pytest.mark.parametrize("threshold", [0.0, -0.5, 1.5])
    def test_threshold_range(self, threshold):
        with pytest.raises(ValueError):
            CompleteLinkClusterer(["a", "b"]).merge(threshold)


class TestNameClusters:

    def test_numbering(self):
        named = name_clusters([["a", "b"], ["c"]])
        assert named == {"CL0001": ["a", "b"], "CL0002": ["c"]}
