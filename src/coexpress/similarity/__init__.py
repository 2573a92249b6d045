"""Similarity sinks and the feature-clustering adapter."""

from coexpress.similarity.sinks import (
    NeighborhoodBuilder,
    PairCollector,
    SimilarityPair,
    SimilaritySink,
    SinkGroup,
    feed_pairs,
)
from coexpress.similarity.clustering import (
    ClusteringCollaborator,
    CompleteLinkClusterer,
    name_clusters,
)

__all__ = [
    'NeighborhoodBuilder',
    'PairCollector',
    'SimilarityPair',
    'SimilaritySink',
    'SinkGroup',
    'feed_pairs',
    'ClusteringCollaborator',
    'CompleteLinkClusterer',
    'name_clusters',
]
