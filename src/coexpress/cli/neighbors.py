"""
coexpress neighbors command - store each feature's strongest partners.

Reads a correlation table (from a file or the standard input), keeps pairs
scoring at least --min, and stores up to --max neighbors per feature,
strongest first, as a comma-separated list.

Usage:
    coexpress neighbors 83333.1 --store rnaseq --input 83333.1.corr.tbl --max 10 --min 0.9
"""

import argparse
import logging
import sys
from pathlib import Path

from coexpress.cli._common import add_store_arguments, apply_config_file, open_store, setup_logging
from coexpress.cli._validators import _positive_int, _score
from coexpress.config import NeighborhoodConfig
from coexpress.io.store import GenomeNotFoundError

logger = logging.getLogger(__name__)

_CONFIG_KEYS = {
    'max': ('neighborhood', 'max_neighbors'),
    'min': ('neighborhood', 'min_correlation'),
}


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the neighbors subcommand."""
    defaults = NeighborhoodConfig()
    parser = subparsers.add_parser(
        "neighbors",
        help="Store the strongest correlated neighbors of each feature",
        description=(
            "Keep the --max highest-scoring partners of every feature, among "
            "pairs scoring at least --min, and store them in the genome's "
            "neighbor file."
        ),
        allow_abbrev=False,
    )
    add_store_arguments(parser)
    parser.add_argument("--input", "-i", type=Path, default=None,
                        help="Correlation table (default: standard input)")
    parser.add_argument("--max", type=_positive_int, default=defaults.max_neighbors,
                        help=f"Neighbors kept per feature (default: {defaults.max_neighbors})")
    parser.add_argument("--min", type=_score, default=defaults.min_correlation,
                        help="Minimum correlation for a neighbor "
                             f"(default: {defaults.min_correlation})")
    parser.set_defaults(func=run_neighbors)


def run_neighbors(args: argparse.Namespace) -> int:
    """Execute the neighbors command."""
    from coexpress.io.correlation_file import load_correlations
    from coexpress.pipeline import build_neighborhoods, store_neighborhoods

    setup_logging(args.verbose)

    try:
        args = apply_config_file(args, _CONFIG_KEYS)
        config = NeighborhoodConfig(max_neighbors=args.max, min_correlation=args.min)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if args.input is None:
        logger.info("Correlations will be read from the standard input.")
    else:
        logger.info(f"Correlations will be read from {args.input}.")

    try:
        store = open_store(args)
        pairs = load_correlations(args.input if args.input is not None else sys.stdin)
        builder = build_neighborhoods(pairs, config)
        store_neighborhoods(store, args.genome, builder)
    except (FileNotFoundError, GenomeNotFoundError, KeyError, ValueError) as e:
        logger.error(str(e))
        return 1

    return 0
