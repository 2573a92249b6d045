"""
coexpress CLI - Command-line interface for RNA expression correlation and baselines.

Commands:
    coexpress correlate  - Pairwise feature correlations for a genome
    coexpress cluster    - Group co-expressed features (complete linkage)
    coexpress neighbors  - Store each feature's strongest correlated neighbors
    coexpress baseline   - Compute and store per-feature expression baselines
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for coexpress."""
    parser = argparse.ArgumentParser(
        prog="coexpress",
        description="Expression correlation, neighbor ranking and baselines for RNA-seq features",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  correlate   Pairwise feature correlations for a genome
  cluster     Group co-expressed features (complete linkage)
  neighbors   Store each feature's strongest correlated neighbors
  baseline    Compute and store per-feature expression baselines

Examples:
  coexpress correlate 83333.1 --store rnaseq --save 83333.1.corr.tbl
  coexpress neighbors 83333.1 --store rnaseq --input 83333.1.corr.tbl --max 10 --min 0.9
  coexpress cluster 83333.1 --store rnaseq --load 83333.1.corr.tbl --min 0.7
  coexpress baseline 83333.1 --store rnaseq --method weighted
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Import and register subcommands
    from coexpress.cli import baseline, cluster, correlate, neighbors
    correlate.register_parser(subparsers)
    cluster.register_parser(subparsers)
    neighbors.register_parser(subparsers)
    baseline.register_parser(subparsers)

    raw_args = list(args) if args is not None else sys.argv[1:]
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Raw flags let --config values yield to explicitly passed options
    parsed_args.cli_args = raw_args

    # Dispatch to subcommand
    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
