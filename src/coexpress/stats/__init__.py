"""
Statistical engines: pairwise correlation and cluster-weighted baselines.
"""

from coexpress.stats.correlation import (
    UNDEFINED_SCORE,
    CorrelationEngine,
    correlate_row,
    pearson_overlap,
)
from coexpress.stats.running import RunningStats
from coexpress.stats.baseline import (
    BaselineComputer,
    MeanBaselineComputer,
    WeightedBaselineComputer,
    create_baseline_computer,
    summarize_cluster_means,
    trimean,
)

__all__ = [
    # Correlation
    'UNDEFINED_SCORE',
    'CorrelationEngine',
    'correlate_row',
    'pearson_overlap',
    # Accumulation
    'RunningStats',
    # Baselines
    'BaselineComputer',
    'MeanBaselineComputer',
    'WeightedBaselineComputer',
    'create_baseline_computer',
    'summarize_cluster_means',
    'trimean',
]
