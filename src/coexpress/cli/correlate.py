"""
coexpress correlate command - pairwise feature correlations for a genome.

Computes the Pearson correlation of every feature pair over the genome's
non-suspicious samples and writes the correlation table (tab-delimited,
feature_1 / feature_2 / score). The table can be piped into
`coexpress neighbors` or cached with --save and reused with --load.

Usage:
    coexpress correlate 83333.1 --store rnaseq --save 83333.1.corr.tbl
    coexpress correlate 83333.1 --store rnaseq | coexpress neighbors 83333.1 --store rnaseq
"""

import argparse
import logging
import sys

from coexpress.cli._common import (
    CORRELATION_KEYS,
    add_correlation_arguments,
    add_store_arguments,
    apply_config_file,
    correlation_config,
    open_store,
    setup_logging,
)
from coexpress.io.correlation_file import (
    CorrelationFileWriter,
    CorrelationStreamWriter,
    load_correlations,
)
from coexpress.io.store import GenomeNotFoundError

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the correlate subcommand."""
    parser = subparsers.add_parser(
        "correlate",
        help="Compute pairwise feature correlations",
        description=(
            "Compute the correlation of every feature pair over the genome's "
            "non-suspicious RNA samples. Pairs with fewer than --min-overlap "
            "shared values score 0.0."
        ),
        allow_abbrev=False,
    )
    add_store_arguments(parser)
    add_correlation_arguments(parser)
    parser.set_defaults(func=run_correlate)


def run_correlate(args: argparse.Namespace) -> int:
    """Execute the correlate command."""
    from coexpress.pipeline import compute_correlations

    setup_logging(args.verbose)

    try:
        args = apply_config_file(args, CORRELATION_KEYS)
        config = correlation_config(args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        if args.load is not None:
            # Re-emit a cached table, e.g. to pipe it into another command.
            writer = CorrelationStreamWriter(sys.stdout)
            for pair in load_correlations(args.load):
                writer.add_similarity(pair.feature_a, pair.feature_b, pair.score)
        elif args.save is not None:
            store = open_store(args)
            with CorrelationFileWriter(args.save) as writer:
                compute_correlations(store, args.genome, config, writer)
        else:
            store = open_store(args)
            compute_correlations(store, args.genome, config,
                                 CorrelationStreamWriter(sys.stdout))
        sys.stdout.flush()
    except (FileNotFoundError, GenomeNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1

    return 0

