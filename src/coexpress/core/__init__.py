"""
Core data structures for the expression correlation engine.

1. FeatureVectorAssembler: flips per-sample rows into per-feature vectors
2. Neighborhood: bounded, sorted list of a feature's strongest partners
"""

from coexpress.core.assembly import FeatureVectorAssembler
from coexpress.core.neighborhood import Neighbor, Neighborhood

__all__ = [
    'FeatureVectorAssembler',
    'Neighbor',
    'Neighborhood',
]
