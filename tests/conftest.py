"""
Pytest configuration and shared fixtures.

This module provides synthetic expression data and a file-backed store
for all test suites.
"""

from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import pytest

from coexpress.io.store import CsvExpressionStore

GENOME_ID = "83333.1"


def feature_name(k: int) -> str:
    return f"fig|{GENOME_ID}.peg.{k}"


def write_genome(
    root: Path,
    genome_id: str,
    expression: pd.DataFrame,
    samples: Optional[pd.DataFrame] = None,
) -> None:
    """Write the expression (and optional sample metadata) files for a genome."""
    expression.index.name = "feature_id"
    expression.to_csv(root / f"{genome_id}.expression.csv")
    if samples is not None:
        samples.index.name = "sample_id"
        samples.to_csv(root / f"{genome_id}.samples.csv")


def generate_synthetic_expression(
    n_features: int,
    n_samples: int,
    n_modules: int = 3,
    missing_fraction: float = 0.05,
    seed: int = 42,
) -> np.ndarray:
    """
    Generate a (features x samples) matrix with co-expressed modules.

    Features are assigned round-robin to modules; each follows its module's
    pattern plus a little noise. A fraction of values is replaced by NaN.
    """
    rng = np.random.default_rng(seed)
    patterns = rng.normal(size=(n_modules, n_samples))
    data = np.empty((n_features, n_samples))
    for i in range(n_features):
        scale = rng.uniform(0.5, 2.0)
        data[i] = 10.0 + scale * patterns[i % n_modules] + rng.normal(scale=0.1, size=n_samples)
    missing = rng.random(size=data.shape) < missing_fraction
    data[missing] = np.nan
    return data


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def small_expression():
    """
    Six features over eight samples with known relationships.

    peg.1  base pattern
    peg.2  2 * peg.1 + 1            (r = 1 with peg.1)
    peg.3  -peg.1                    (r = -1 with peg.1)
    peg.4  unrelated values
    peg.5  peg.1 with two values missing
    peg.6  constant                 (undefined correlation)
    """
    base = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0])
    rows = {
        feature_name(1): base,
        feature_name(2): 2.0 * base + 1.0,
        feature_name(3): -base,
        feature_name(4): np.array([3.0, 1.0, 4.0, 1.0, 5.0, 9.0, 2.0, 6.0]),
        feature_name(5): np.where(np.isin(np.arange(8), [1, 4]), np.nan, base),
        feature_name(6): np.full(8, 7.0),
    }
    columns = [f"SRR{k:03d}" for k in range(1, 9)]
    return pd.DataFrame.from_dict(rows, orient="index", columns=columns)


@pytest.fixture
def small_samples():
    """Clusters CL1 (3 samples) and CL2 (3 samples), one unclustered, one suspicious."""
    return pd.DataFrame(
        {
            "cluster_id": ["CL1", "CL1", "CL1", "CL2", "CL2", "CL2", "", "CL2"],
            "suspicious": [False, False, False, False, False, False, False, True],
        },
        index=[f"SRR{k:03d}" for k in range(1, 9)],
    )


@pytest.fixture
def store_root(tmp_path, small_expression, small_samples):
    """Store directory holding the small genome."""
    write_genome(tmp_path, GENOME_ID, small_expression.copy(), small_samples.copy())
    return tmp_path


@pytest.fixture
def store(store_root):
    return CsvExpressionStore(store_root)
