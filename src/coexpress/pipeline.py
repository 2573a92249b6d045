"""
End-to-end workflows for one genome.

Each workflow wires the store, the engine components and their
configuration together:

    correlations   store samples -> vectors -> CorrelationEngine -> sink
    neighborhoods  correlation pairs -> NeighborhoodBuilder -> store
    clusters       correlation pairs -> CompleteLinkClusterer -> CLnnnn groups
    baselines      store samples -> BaselineComputer -> store

Suspicious samples never contribute to correlations or baselines.

Examples:
    >>> store = CsvExpressionStore("rnaseq")
    >>> builder = NeighborhoodBuilder(NeighborhoodConfig())
    >>> compute_correlations(store, "83333.1", CorrelationConfig(), builder)
    >>> store_neighborhoods(store, "83333.1", builder)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from coexpress.config import BaselineConfig, ClusterConfig, CorrelationConfig, NeighborhoodConfig
from coexpress.core.assembly import FeatureVectorAssembler
from coexpress.io.correlation_file import CorrelationFileWriter, load_correlations
from coexpress.io.store import ExpressionStore
from coexpress.similarity.clustering import CompleteLinkClusterer, name_clusters
from coexpress.similarity.sinks import (
    NeighborhoodBuilder,
    SimilarityPair,
    SimilaritySink,
    SinkGroup,
    feed_pairs,
)
from coexpress.stats.baseline import create_baseline_computer
from coexpress.stats.correlation import CorrelationEngine

__all__ = [
    'assemble_vectors',
    'compute_correlations',
    'build_neighborhoods',
    'store_neighborhoods',
    'cluster_features',
    'compute_baselines',
    'store_baselines',
]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_SAMPLE_LOG_INTERVAL = 500
_UPDATE_LOG_INTERVAL = 100


def assemble_vectors(
    store: ExpressionStore, genome_id: str
) -> Tuple[List[str], NDArray[np.float64]]:
    """
    Collect per-feature expression vectors from the genome's samples.

    Returns:
        (feature_ids, vectors) where vectors[i, s] is feature i's level in
        the s-th non-suspicious sample (NaN = missing).
    """
    feature_ids = store.feature_ids(genome_id)
    assembler = FeatureVectorAssembler(len(feature_ids))
    logger.info(f"Collecting expression vectors for genome {genome_id}.")
    for record in store.iterate_samples(genome_id):
        assembler.add(record.levels)
        if assembler.n_samples % _SAMPLE_LOG_INTERVAL == 0:
            logger.info(f"{assembler.n_samples} samples processed.")
    logger.info(
        f"{assembler.n_samples} samples collected for {len(feature_ids)} features."
    )
    return feature_ids, assembler.vectors()


def compute_correlations(
    store: ExpressionStore,
    genome_id: str,
    config: Optional[CorrelationConfig],
    sink: SimilaritySink,
    load_path: Optional[PathLike] = None,
    save_path: Optional[PathLike] = None,
) -> int:
    """
    Deliver every pairwise correlation of the genome's features to a sink.

    Args:
        store: Sample source.
        genome_id: Genome to process.
        config: Correlation settings.
        sink: Receives add_similarity(id_a, id_b, score).
        load_path: Interchange file with precomputed correlations. When
            given, nothing is computed and the store is not read.
        save_path: Also write computed correlations to this file.

    Returns:
        Number of pairs delivered.
    """
    if load_path is not None:
        if save_path is not None:
            raise ValueError("load_path and save_path cannot both be given")
        logger.info(f"Loading correlations from {load_path}.")
        return feed_pairs(load_correlations(load_path), sink)

    feature_ids, vectors = assemble_vectors(store, genome_id)
    engine = CorrelationEngine(feature_ids, config)
    if save_path is None:
        return engine.run(vectors, sink)
    with CorrelationFileWriter(save_path) as writer:
        return engine.run(vectors, SinkGroup(sink, writer))


def build_neighborhoods(
    pairs: Iterable[SimilarityPair],
    config: Optional[NeighborhoodConfig] = None,
) -> NeighborhoodBuilder:
    """Feed stored correlations into a fresh NeighborhoodBuilder."""
    builder = NeighborhoodBuilder(config)
    feed_pairs(pairs, builder)
    logger.info(
        f"{builder.seen} correlations processed, {builder.kept} kept, "
        f"{len(builder)} features have neighbors."
    )
    return builder


def store_neighborhoods(
    store: ExpressionStore, genome_id: str, builder: NeighborhoodBuilder
) -> int:
    """
    Write each non-empty neighborhood as a comma-joined id list.

    All writes happen in one transaction.

    Returns:
        Number of features updated.
    """
    updated = 0
    total_neighbors = 0
    logger.info("Updating neighbor lists.")
    with store.transaction(genome_id):
        for feature_id, neighbors in builder.neighbor_strings():
            store.write_neighbors(feature_id, neighbors)
            updated += 1
            total_neighbors += len(builder.neighborhood(feature_id))
            if updated % _UPDATE_LOG_INTERVAL == 0:
                logger.info(f"{updated} updates submitted.")
    logger.info(f"{updated} features updated with {total_neighbors} neighbors.")
    return updated


def cluster_features(
    store: ExpressionStore,
    genome_id: str,
    correlation_config: Optional[CorrelationConfig] = None,
    cluster_config: Optional[ClusterConfig] = None,
    load_path: Optional[PathLike] = None,
    save_path: Optional[PathLike] = None,
) -> Dict[str, List[str]]:
    """
    Group co-expressed features.

    Correlations are computed (or loaded) and handed to a complete-link
    clusterer, which merges groups while every member pair scores at least
    cluster_config.min_score.

    Returns:
        {"CL0001": [feature ids], ...}, largest cluster first.
    """
    cluster_config = cluster_config or ClusterConfig()
    clusterer = CompleteLinkClusterer(store.feature_ids(genome_id))
    compute_correlations(
        store, genome_id, correlation_config, clusterer,
        load_path=load_path, save_path=save_path,
    )
    clusters = name_clusters(clusterer.merge(cluster_config.min_score))
    multi = sum(1 for members in clusters.values() if len(members) > 1)
    logger.info(f"{len(clusters)} clusters found, {multi} with more than one feature.")
    return clusters


def compute_baselines(
    store: ExpressionStore,
    genome_id: str,
    config: Optional[BaselineConfig] = None,
) -> NDArray[np.float64]:
    """
    Compute one baseline per feature from the genome's non-suspicious samples.

    Returns:
        Baselines in feature-index order (NaN = unknown).
    """
    n_features = len(store.feature_ids(genome_id))
    count = 0
    logger.info(f"Processing samples for genome {genome_id}.")
    with create_baseline_computer(n_features, config) as computer:
        for record in store.iterate_samples(genome_id):
            computer.process_record(record.cluster_id, record.levels)
            count += 1
            if count % _SAMPLE_LOG_INTERVAL == 0:
                logger.info(f"{count} samples processed.")
        logger.info(
            f"{count} total samples processed "
            f"({computer.records_skipped} unclustered samples skipped)."
        )
        return computer.get_baselines()


def store_baselines(
    store: ExpressionStore,
    genome_id: str,
    feature_ids: Sequence[str],
    baselines: NDArray[np.float64],
) -> int:
    """Write baselines in one transaction; returns the number written."""
    if len(feature_ids) != len(baselines):
        raise ValueError(
            f"{len(baselines)} baselines given for {len(feature_ids)} features"
        )
    unknown = int(np.count_nonzero(~np.isfinite(baselines)))
    logger.info(f"Updating baselines for {len(feature_ids)} features ({unknown} unknown).")
    with store.transaction(genome_id):
        for feature_id, value in zip(feature_ids, baselines):
            store.write_baseline(feature_id, float(value))
    return len(feature_ids)
