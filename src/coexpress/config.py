"""
Per-component run configuration.

Each engine component receives exactly one frozen configuration object,
built once (from defaults, a YAML/JSON config file, or CLI flags) and
validated at construction so that malformed parameters are rejected before
any computation starts.

Examples:
    >>> from coexpress.config import NeighborhoodConfig
    >>> cfg = NeighborhoodConfig(max_neighbors=5, min_correlation=0.8)
    >>> NeighborhoodConfig(max_neighbors=0)
    Traceback (most recent call last):
        ...
    ValueError: max_neighbors must be positive, got 0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

__all__ = [
    'DEFAULT_MIN_OVERLAP',
    'BaselineMethod',
    'CorrelationConfig',
    'NeighborhoodConfig',
    'ClusterConfig',
    'BaselineConfig',
    'RunConfig',
]

# Fewest positions finite in both vectors for a correlation to be defined.
DEFAULT_MIN_OVERLAP = 3

_PERCENTILE_METHODS = frozenset({
    'inverted_cdf', 'averaged_inverted_cdf', 'closest_observation',
    'interpolated_inverted_cdf', 'hazen', 'weibull', 'linear',
    'median_unbiased', 'normal_unbiased', 'lower', 'higher',
    'midpoint', 'nearest',
})


class BaselineMethod(Enum):
    """Baseline computation algorithms."""

    WEIGHTED = "weighted"  # trimean of per-cluster means
    MEAN = "mean"          # plain mean over all samples


@dataclass(frozen=True)
class CorrelationConfig:
    """Pairwise correlation settings.

    Attributes:
        min_overlap: Minimum number of shared finite positions needed to
            compute a coefficient; below this the pair scores 0.0.
        n_workers: Thread-pool size for the outer feature loop.
        log_interval: Emit a progress log line every this many comparisons.
        progress: Show a tqdm progress bar over feature rows.
    """

    min_overlap: int = DEFAULT_MIN_OVERLAP
    n_workers: int = 4
    log_interval: int = 2000
    progress: bool = True

    def __post_init__(self):
        if self.min_overlap < 2:
            raise ValueError(f"min_overlap must be at least 2, got {self.min_overlap}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be positive, got {self.n_workers}")
        if self.log_interval < 1:
            raise ValueError(f"log_interval must be positive, got {self.log_interval}")


@dataclass(frozen=True)
class NeighborhoodConfig:
    """Neighbor retention settings."""

    max_neighbors: int = 10
    min_correlation: float = 0.90

    def __post_init__(self):
        if self.max_neighbors <= 0:
            raise ValueError(f"max_neighbors must be positive, got {self.max_neighbors}")
        if not (0.0 < self.min_correlation <= 1.0):
            raise ValueError(
                f"min_correlation must be in (0, 1], got {self.min_correlation}"
            )


@dataclass(frozen=True)
class ClusterConfig:
    """Feature clustering settings (merge threshold for the clusterer)."""

    min_score: float = 0.70

    def __post_init__(self):
        if not (0.0 < self.min_score <= 1.0):
            raise ValueError(f"min_score must be in (0, 1], got {self.min_score}")


@dataclass(frozen=True)
class BaselineConfig:
    """Baseline computation settings.

    Attributes:
        method: Which baseline computer to build.
        percentile_method: numpy percentile method used by the trimean.
            The default "weibull" places percentile p at rank p*(n+1) with
            linear interpolation, clamped to the smallest/largest value.
        n_workers: Thread-pool size for per-record feature slices
            (1 = update the whole record in the calling thread).
        min_slice: Smallest feature slice handed to a worker.
    """

    method: BaselineMethod = BaselineMethod.WEIGHTED
    percentile_method: str = "weibull"
    n_workers: int = 1
    min_slice: int = 1024

    def __post_init__(self):
        if isinstance(self.method, str):
            try:
                object.__setattr__(self, 'method', BaselineMethod(self.method.lower()))
            except ValueError:
                valid = ", ".join(m.value for m in BaselineMethod)
                raise ValueError(
                    f"Unknown baseline method '{self.method}'. Valid: {valid}"
                ) from None
        if self.percentile_method not in _PERCENTILE_METHODS:
            raise ValueError(f"Unknown percentile method '{self.percentile_method}'")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be positive, got {self.n_workers}")
        if self.min_slice < 1:
            raise ValueError(f"min_slice must be positive, got {self.min_slice}")


@dataclass(frozen=True)
class RunConfig:
    """All component configurations for one run."""

    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    neighborhood: NeighborhoodConfig = field(default_factory=NeighborhoodConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    baseline: BaselineConfig = field(default_factory=BaselineConfig)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> RunConfig:
        """Build from a nested mapping such as a parsed YAML file.

        Unknown sections or keys raise ValueError rather than being ignored.
        """
        sections = {
            'correlation': CorrelationConfig,
            'neighborhood': NeighborhoodConfig,
            'cluster': ClusterConfig,
            'baseline': BaselineConfig,
        }
        unknown = set(config) - set(sections)
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")

        kwargs = {}
        for name, section_cls in sections.items():
            values = config.get(name) or {}
            if not isinstance(values, dict):
                raise ValueError(f"Config section '{name}' must be a mapping")
            try:
                kwargs[name] = section_cls(**values)
            except TypeError as e:
                raise ValueError(f"Invalid keys in config section '{name}': {e}") from e
        return cls(**kwargs)
