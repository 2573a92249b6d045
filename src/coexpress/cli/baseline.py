"""
coexpress baseline command - per-feature expression baselines.

Reads the genome's non-suspicious samples one at a time and stores one
baseline value per feature.

Methods:
    weighted  trimean of per-cluster means; each sample cluster counts once
    mean      plain mean over all samples

Usage:
    coexpress baseline 83333.1 --store rnaseq --method weighted
"""

import argparse
import logging

from coexpress.cli._common import add_store_arguments, apply_config_file, open_store, setup_logging
from coexpress.cli._validators import _positive_int
from coexpress.config import BaselineConfig, BaselineMethod
from coexpress.io.store import GenomeNotFoundError

logger = logging.getLogger(__name__)

_CONFIG_KEYS = {
    'method': ('baseline', 'method'),
    'percentile_method': ('baseline', 'percentile_method'),
    'workers': ('baseline', 'n_workers'),
}


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the baseline subcommand."""
    defaults = BaselineConfig()
    parser = subparsers.add_parser(
        "baseline",
        help="Compute and store per-feature expression baselines",
        description=(
            "Compute a baseline expression level for every feature of a genome "
            "from its non-suspicious RNA samples."
        ),
        allow_abbrev=False,
    )
    add_store_arguments(parser)
    parser.add_argument("--method", choices=[m.value for m in BaselineMethod],
                        default=defaults.method.value,
                        help=f"Baseline algorithm (default: {defaults.method.value})")
    parser.add_argument("--percentile-method", default=defaults.percentile_method,
                        help="numpy percentile method for the trimean "
                             f"(default: {defaults.percentile_method})")
    parser.add_argument("--workers", type=_positive_int, default=defaults.n_workers,
                        help="Threads updating slices of each record "
                             f"(default: {defaults.n_workers})")
    parser.set_defaults(func=run_baseline)


def run_baseline(args: argparse.Namespace) -> int:
    """Execute the baseline command."""
    from coexpress.pipeline import compute_baselines, store_baselines

    setup_logging(args.verbose)

    try:
        args = apply_config_file(args, _CONFIG_KEYS)
        config = BaselineConfig(
            method=args.method,
            percentile_method=args.percentile_method,
            n_workers=args.workers,
        )
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.info(f"Baseline method is {config.method.value}.")
    try:
        store = open_store(args)
        feature_ids = store.feature_ids(args.genome)
        baselines = compute_baselines(store, args.genome, config)
        store_baselines(store, args.genome, feature_ids, baselines)
    except (FileNotFoundError, GenomeNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1

    return 0
