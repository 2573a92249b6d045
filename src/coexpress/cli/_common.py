"""
Arguments and setup shared by every coexpress subcommand.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from coexpress.cli._validators import _genome_id, _min_overlap, _positive_int
from coexpress.cli.config import ConfigMapping, load_config, merge_config_with_args, validate_config
from coexpress.config import CorrelationConfig
from coexpress.io.store import CsvExpressionStore

logger = logging.getLogger(__name__)

# Correlation flags shared by commands that compute correlations.
CORRELATION_KEYS: ConfigMapping = {
    'workers': ('correlation', 'n_workers'),
    'min_overlap': ('correlation', 'min_overlap'),
}


def add_store_arguments(parser: argparse.ArgumentParser) -> None:
    """Genome positional plus --store, --config and --verbose."""
    parser.add_argument("genome", type=_genome_id,
                        help='Genome ID (e.g. "83333.1")')
    parser.add_argument("--store", "-s", type=Path, required=True,
                        help="Directory holding the genome's expression files")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="YAML/JSON config file (CLI flags override its values)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log debug messages")


def add_correlation_arguments(parser: argparse.ArgumentParser) -> None:
    """Flags for commands that compute (or load) correlations."""
    defaults = CorrelationConfig()
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--load", type=Path, default=None,
                        help="Read correlations from this file instead of computing them")
    source.add_argument("--save", type=Path, default=None,
                        help="Also save computed correlations to this file")
    parser.add_argument("--workers", type=_positive_int, default=defaults.n_workers,
                        help=f"Worker threads for the correlation loop (default: {defaults.n_workers})")
    parser.add_argument("--min-overlap", type=_min_overlap, default=defaults.min_overlap,
                        help="Fewest shared sample values for a defined correlation "
                             f"(default: {defaults.min_overlap})")
    parser.add_argument("--no-progress", action="store_true",
                        help="Disable the progress bar")


def correlation_config(args: argparse.Namespace) -> CorrelationConfig:
    return CorrelationConfig(
        min_overlap=args.min_overlap,
        n_workers=args.workers,
        progress=not args.no_progress,
    )


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def apply_config_file(
    args: argparse.Namespace, mappings: ConfigMapping
) -> argparse.Namespace:
    """
    Fold --config values into args (explicit CLI flags win).

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file is malformed
    """
    if args.config is None:
        return args
    logger.info(f"Loading configuration from: {args.config}")
    config = load_config(args.config)
    validate_config(config)
    return merge_config_with_args(config, args, mappings, getattr(args, 'cli_args', None))


def open_store(args: argparse.Namespace) -> CsvExpressionStore:
    return CsvExpressionStore(args.store)


def output_label(path: Optional[Path]) -> str:
    return str(path) if path is not None else "standard output"
