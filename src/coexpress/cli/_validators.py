"""Shared argparse type validators for CLI parameter bounds checking.

These validators produce clear error messages when users pass invalid
values (e.g., ``--min 1.5``, ``--max 0``).  They are intended to be used
as the ``type=`` argument in ``add_argument()``.
"""

from __future__ import annotations

import argparse

from coexpress.io.store import validate_genome_id


def _positive_int(value: str) -> int:
    """argparse type for positive integers (> 0)."""
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue


def _min_overlap(value: str) -> int:
    """argparse type for overlap counts (>= 2)."""
    ivalue = int(value)
    if ivalue < 2:
        raise argparse.ArgumentTypeError(
            f"{value} is too small (a correlation needs at least 2 shared values)"
        )
    return ivalue


def _score(value: str) -> float:
    """argparse type for correlation thresholds in the half-open interval (0, 1]."""
    fvalue = float(value)
    if not (0 < fvalue <= 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid correlation threshold (must be in (0, 1])"
        )
    return fvalue


def _genome_id(value: str) -> str:
    """argparse type for genome IDs of the form "taxon.version"."""
    try:
        return validate_genome_id(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None
