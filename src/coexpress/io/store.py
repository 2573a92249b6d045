"""
Storage boundary for RNA expression samples and per-feature results.

The engine never builds queries or manages connections. It consumes a
stream of sample records and writes one baseline and one neighbor list per
feature through the ExpressionStore protocol. Writes happen inside a
transaction: either all of a run's writes land, or none do.

CsvExpressionStore is a file-backed implementation. For genome G under a
root directory:

    G.expression.csv   features x samples; first column = feature ids in
                       expression-array order (the feature index)
    G.samples.csv      sample_id, cluster_id (blank = unclustered),
                       suspicious (True/False)
    G.baselines.csv    feature_id, baseline          (written by runs)
    G.neighbors.csv    feature_id, neighbors         (written by runs)

Example expression file:
    ```
    feature_id,SRR001,SRR002,SRR003
    fig|83333.1.peg.1,12.5,,13.1
    fig|83333.1.peg.2,7.25,8.0,6.5
    ```

Examples:
    >>> store = CsvExpressionStore(Path("rnaseq"))
    >>> for record in store.iterate_samples("83333.1"):
    ...     computer.process_record(record.cluster_id, record.levels)
    >>> with store.transaction("83333.1"):
    ...     store.write_baseline("fig|83333.1.peg.1", 12.8)
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import ContextManager, Dict, Iterator, List, Optional, Protocol, Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from coexpress.utils.fileio import atomic_write_csv

__all__ = [
    'GENOME_ID_PATTERN',
    'GenomeNotFoundError',
    'validate_genome_id',
    'SampleRecord',
    'ExpressionStore',
    'CsvExpressionStore',
]

logger = logging.getLogger(__name__)

GENOME_ID_PATTERN = re.compile(r"\d+\.\d+")


class GenomeNotFoundError(LookupError):
    """Genome is unknown to the store or has no features."""


def _as_flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "t", "yes", "y", "1"}
    if pd.isna(value):
        return False
    return bool(value)


def validate_genome_id(genome_id: str) -> str:
    """Return genome_id if it looks like "taxon.version", else raise ValueError."""
    if not GENOME_ID_PATTERN.fullmatch(genome_id):
        raise ValueError(f'Invalid genome ID "{genome_id}".')
    return genome_id


@dataclass(frozen=True)
class SampleRecord:
    """One RNA-seq sample: expression levels in feature-index order."""

    sample_id: str
    levels: NDArray[np.float64]
    cluster_id: Optional[str] = None
    suspicious: bool = False


class ExpressionStore(Protocol):
    """What the engine needs from storage."""

    def feature_ids(self, genome_id: str) -> List[str]:
        ...

    def iterate_samples(
        self, genome_id: str, include_suspicious: bool = False
    ) -> Iterator[SampleRecord]:
        ...

    def transaction(self, genome_id: str) -> ContextManager[None]:
        ...

    def write_baseline(self, feature_id: str, value: float) -> None:
        ...

    def write_neighbors(self, feature_id: str, neighbors: str) -> None:
        ...


@dataclass
class _PendingWrites:
    genome_id: str
    feature_index: Dict[str, int]
    baselines: Dict[str, float]
    neighbors: Dict[str, str]


class CsvExpressionStore:
    """
    ExpressionStore over per-genome CSV files in one directory.

    Expression matrices are read once per genome and cached.

    Args:
        root: Directory holding the genome files.

    Raises:
        FileNotFoundError: If root is not a directory.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        if not self.root.is_dir():
            raise FileNotFoundError(f"Store directory not found: {self.root}")
        self._matrices: Dict[str, pd.DataFrame] = {}
        self._pending: Optional[_PendingWrites] = None

    def path(self, genome_id: str, kind: str) -> Path:
        return self.root / f"{genome_id}.{kind}.csv"

    def _expression(self, genome_id: str) -> pd.DataFrame:
        frame = self._matrices.get(genome_id)
        if frame is not None:
            return frame
        validate_genome_id(genome_id)
        path = self.path(genome_id, "expression")
        if not path.exists():
            raise GenomeNotFoundError(
                f'Genome ID "{genome_id}" is not found or has no features.'
            )
        try:
            frame = pd.read_csv(path, index_col=0)
        except pd.errors.EmptyDataError as e:
            raise GenomeNotFoundError(
                f'Genome ID "{genome_id}" is not found or has no features.'
            ) from e
        if frame.shape[0] == 0:
            raise GenomeNotFoundError(
                f'Genome ID "{genome_id}" is not found or has no features.'
            )
        frame.index = frame.index.astype(str)
        frame.columns = frame.columns.astype(str)
        if not frame.index.is_unique:
            dupes = frame.index[frame.index.duplicated()].unique().tolist()[:5]
            raise ValueError(f"Duplicate feature IDs in {path}: {dupes}")
        try:
            frame = frame.astype(np.float64)
        except ValueError as e:
            raise ValueError(f"Non-numeric expression values in {path}: {e}") from e
        logger.info(
            f"Loaded {frame.shape[0]} features x {frame.shape[1]} samples for genome {genome_id}."
        )
        self._matrices[genome_id] = frame
        return frame

    def _sample_metadata(self, genome_id: str) -> pd.DataFrame:
        path = self.path(genome_id, "samples")
        if not path.exists():
            logger.warning(f"No sample metadata for {genome_id}; all samples are unclustered.")
            return pd.DataFrame(columns=["cluster_id", "suspicious"])
        meta = pd.read_csv(path, index_col=0, dtype={"cluster_id": str})
        meta.index = meta.index.astype(str)
        if "cluster_id" not in meta.columns:
            meta["cluster_id"] = None
        if "suspicious" not in meta.columns:
            meta["suspicious"] = False
        meta["suspicious"] = meta["suspicious"].map(_as_flag)
        return meta

    def feature_ids(self, genome_id: str) -> List[str]:
        """Feature IDs in expression-array order."""
        return self._expression(genome_id).index.tolist()

    def iterate_samples(
        self, genome_id: str, include_suspicious: bool = False
    ) -> Iterator[SampleRecord]:
        """
        Yield the genome's samples in file column order.

        Suspicious samples are skipped unless include_suspicious is set.
        Samples missing from the metadata file are unclustered and not
        suspicious.
        """
        frame = self._expression(genome_id)
        meta = self._sample_metadata(genome_id)
        for sample_id in frame.columns:
            cluster_id = None
            suspicious = False
            if sample_id in meta.index:
                row = meta.loc[sample_id]
                if pd.notna(row["cluster_id"]) and str(row["cluster_id"]).strip():
                    cluster_id = str(row["cluster_id"]).strip()
                suspicious = bool(row["suspicious"])
            if suspicious and not include_suspicious:
                continue
            yield SampleRecord(
                sample_id=sample_id,
                levels=frame[sample_id].to_numpy(dtype=np.float64),
                cluster_id=cluster_id,
                suspicious=suspicious,
            )

    @contextmanager
    def transaction(self, genome_id: str) -> Iterator[None]:
        """
        Group writes for one genome; they are applied when the block exits.

        On an exception nothing is written and the exception propagates.
        """
        if self._pending is not None:
            raise RuntimeError("A transaction is already open")
        features = self.feature_ids(genome_id)
        self._pending = _PendingWrites(
            genome_id=genome_id,
            feature_index={fid: i for i, fid in enumerate(features)},
            baselines={},
            neighbors={},
        )
        try:
            yield
            pending = self._pending
            self._commit(pending)
        except BaseException:
            if self._pending is not None:
                logger.warning(
                    f"Transaction for {genome_id} rolled back; "
                    f"{len(self._pending.baselines) + len(self._pending.neighbors)} "
                    f"pending writes discarded."
                )
            raise
        finally:
            self._pending = None

    def _require_transaction(self, feature_id: str) -> _PendingWrites:
        if self._pending is None:
            raise RuntimeError("Writes must happen inside store.transaction()")
        if feature_id not in self._pending.feature_index:
            raise KeyError(
                f"Feature {feature_id} does not belong to genome {self._pending.genome_id}"
            )
        return self._pending

    def write_baseline(self, feature_id: str, value: float) -> None:
        self._require_transaction(feature_id).baselines[feature_id] = float(value)

    def write_neighbors(self, feature_id: str, neighbors: str) -> None:
        self._require_transaction(feature_id).neighbors[feature_id] = neighbors

    def _commit(self, pending: _PendingWrites) -> None:
        if pending.baselines:
            self._update_table(pending, "baselines", "baseline", pending.baselines)
        if pending.neighbors:
            self._update_table(pending, "neighbors", "neighbors", pending.neighbors)

    def _update_table(self, pending: _PendingWrites, kind: str, column: str, values: Dict) -> None:
        path = self.path(pending.genome_id, kind)
        merged: Dict[str, object] = {}
        if path.exists():
            if column == "neighbors":
                existing = pd.read_csv(path, index_col=0, dtype={column: str}, keep_default_na=False)
            else:
                existing = pd.read_csv(path, index_col=0)
            existing.index = existing.index.astype(str)
            merged.update(existing[column].to_dict())
        merged.update(values)
        order = sorted(merged, key=lambda fid: pending.feature_index.get(fid, len(merged)))
        frame = pd.DataFrame({column: [merged[fid] for fid in order]},
                             index=pd.Index(order, name="feature_id"))
        atomic_write_csv(path, frame)
        logger.info(f"Updated {column} for {len(values)} features in {path}.")

    def read_baselines(self, genome_id: str) -> pd.Series:
        """Stored baselines keyed by feature id (empty if never written)."""
        path = self.path(genome_id, "baselines")
        if not path.exists():
            return pd.Series(dtype=np.float64, name="baseline")
        return pd.read_csv(path, index_col=0)["baseline"]

    def read_neighbors(self, genome_id: str) -> Dict[str, List[str]]:
        """Stored neighbor lists, strongest first (empty if never written)."""
        path = self.path(genome_id, "neighbors")
        if not path.exists():
            return {}
        frame = pd.read_csv(path, index_col=0, dtype={"neighbors": str}, keep_default_na=False)
        return {str(fid): value.split(",") if value else []
                for fid, value in frame["neighbors"].items()}
