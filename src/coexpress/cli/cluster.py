"""
coexpress cluster command - group co-expressed features.

Correlations are computed (or loaded with --load) and fed to complete-link
agglomerative clustering: groups merge only while every member pair
scores at least --min. Clusters are numbered CL0001, CL0002, ... from the
largest down and written as a two-column CSV (cluster_id, feature_id).

Usage:
    coexpress cluster 83333.1 --store rnaseq --min 0.7 --output 83333.1.clusters.csv
"""

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

from coexpress.cli._common import (
    CORRELATION_KEYS,
    add_correlation_arguments,
    add_store_arguments,
    apply_config_file,
    correlation_config,
    open_store,
    output_label,
    setup_logging,
)
from coexpress.cli._validators import _score
from coexpress.config import ClusterConfig
from coexpress.io.store import GenomeNotFoundError

logger = logging.getLogger(__name__)

_CONFIG_KEYS = dict(CORRELATION_KEYS, min=('cluster', 'min_score'))


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the cluster subcommand."""
    defaults = ClusterConfig()
    parser = subparsers.add_parser(
        "cluster",
        help="Group co-expressed features",
        description=(
            "Cluster the genome's features by expression correlation using "
            "complete linkage; every pair inside a cluster scores at least --min."
        ),
        allow_abbrev=False,
    )
    add_store_arguments(parser)
    add_correlation_arguments(parser)
    parser.add_argument("--min", type=_score, default=defaults.min_score,
                        help=f"Minimum score for clustering (default: {defaults.min_score})")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Cluster membership CSV (default: standard output)")
    parser.set_defaults(func=run_cluster)


def clusters_frame(clusters) -> pd.DataFrame:
    """One row per membership, clusters in numbering order."""
    rows = [(cluster_id, fid) for cluster_id, members in clusters.items() for fid in members]
    return pd.DataFrame(rows, columns=["cluster_id", "feature_id"])


def run_cluster(args: argparse.Namespace) -> int:
    """Execute the cluster command."""
    from coexpress.pipeline import cluster_features
    from coexpress.utils.fileio import atomic_write_csv

    setup_logging(args.verbose)

    try:
        args = apply_config_file(args, _CONFIG_KEYS)
        corr_config = correlation_config(args)
        cluster_config = ClusterConfig(min_score=args.min)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        store = open_store(args)
        clusters = cluster_features(
            store, args.genome, corr_config, cluster_config,
            load_path=args.load, save_path=args.save,
        )
    except (FileNotFoundError, GenomeNotFoundError, KeyError, ValueError) as e:
        logger.error(str(e))
        return 1

    frame = clusters_frame(clusters)
    if args.output is None:
        frame.to_csv(sys.stdout, index=False)
    else:
        atomic_write_csv(args.output, frame, index=False)
    logger.info(f"{len(clusters)} clusters written to {output_label(args.output)}.")
    return 0
