"""
coexpress - Expression correlation, neighbor ranking and baseline statistics

Finds which features co-vary across RNA-seq samples, keeps each feature's
strongest correlated partners, and computes per-feature expression
baselines that give every sample cluster equal weight.
"""

__version__ = "0.1.0"

from coexpress.core.assembly import FeatureVectorAssembler
from coexpress.core.neighborhood import Neighborhood
from coexpress.stats.correlation import CorrelationEngine
from coexpress.stats.baseline import WeightedBaselineComputer

__all__ = [
    "FeatureVectorAssembler",
    "Neighborhood",
    "CorrelationEngine",
    "WeightedBaselineComputer",
]
