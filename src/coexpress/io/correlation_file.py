"""
Correlation interchange file.

Correlation runs are expensive (O(N^2 * S)), so their results can be saved
and loaded back instead of recomputed. The format is tab-delimited text,
one pair per line:

    feature_1<TAB>feature_2<TAB>score

Written files start with that header line; the loader also accepts files
without a header (detected by a non-numeric third field on the first line).
Scores are written with ``repr`` so they load back bit-identical.

Examples:
    >>> with CorrelationFileWriter(Path("corr.tbl")) as writer:
    ...     engine.run(vectors, writer)
    >>> pairs = load_correlations(Path("corr.tbl"))
"""

from __future__ import annotations

import io
import logging
from contextlib import ExitStack
from pathlib import Path
from typing import IO, Iterable, List, Optional, Union

import pandas as pd

from coexpress.similarity.sinks import SimilarityPair
from coexpress.utils.fileio import atomic_open

__all__ = [
    'HEADER',
    'CorrelationStreamWriter',
    'CorrelationFileWriter',
    'save_correlations',
    'load_correlations',
]

logger = logging.getLogger(__name__)

HEADER = ("feature_1", "feature_2", "score")


class CorrelationStreamWriter:
    """
    Similarity sink that writes pairs to an open text stream.

    The header line is written immediately.

    Args:
        handle: Writable text stream (e.g. sys.stdout).
    """

    def __init__(self, handle: IO[str]):
        self.handle = handle
        self.count = 0
        handle.write("\t".join(HEADER) + "\n")

    def add_similarity(self, feature_a: str, feature_b: str, score: float) -> None:
        self.handle.write(f"{feature_a}\t{feature_b}\t{float(score)!r}\n")
        self.count += 1


class CorrelationFileWriter:
    """
    Similarity sink that streams pairs to an interchange file.

    The file appears at *path* only when the writer closes without error.

    Args:
        path: Destination file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._stack: Optional[ExitStack] = None
        self._writer: Optional[CorrelationStreamWriter] = None
        self._count = 0

    def __enter__(self) -> CorrelationFileWriter:
        self._stack = ExitStack()
        self._writer = CorrelationStreamWriter(self._stack.enter_context(atomic_open(self.path)))
        return self

    @property
    def count(self) -> int:
        """Pairs written so far."""
        return self._writer.count if self._writer is not None else self._count

    def __exit__(self, exc_type, exc, tb):
        self._count = self.count
        stack, self._stack, self._writer = self._stack, None, None
        result = stack.__exit__(exc_type, exc, tb)
        if exc_type is None:
            logger.info(f"{self.count} correlations saved to {self.path}.")
        return result

    def add_similarity(self, feature_a: str, feature_b: str, score: float) -> None:
        if self._writer is None:
            raise RuntimeError("CorrelationFileWriter must be used as a context manager")
        self._writer.add_similarity(feature_a, feature_b, score)


def save_correlations(pairs: Iterable[SimilarityPair], path: Union[str, Path]) -> int:
    """Write stored pairs to an interchange file; returns the number written."""
    with CorrelationFileWriter(path) as writer:
        for pair in pairs:
            writer.add_similarity(pair.feature_a, pair.feature_b, pair.score)
    return writer.count


def _is_header(line: str) -> bool:
    fields = line.rstrip("\r\n").split("\t")
    if len(fields) < 3:
        raise ValueError(f"Correlation line has {len(fields)} fields, expected 3: {line!r}")
    try:
        float(fields[2])
    except ValueError:
        return True
    return False


def load_correlations(source: Union[str, Path, IO[str]]) -> List[SimilarityPair]:
    """
    Load pairs from an interchange file or open text stream.

    Args:
        source: Path, or a text stream positioned at the first line
            (e.g. sys.stdin).

    Returns:
        Pairs in file order.

    Raises:
        FileNotFoundError: If a path does not exist.
        ValueError: If a line is malformed or a score is not numeric.
    """
    with ExitStack() as stack:
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise FileNotFoundError(f"Correlation file not found: {path}")
            handle = stack.enter_context(open(path, "r"))
            name = str(path)
        else:
            handle = source
            name = getattr(source, "name", "<stream>")

        first = handle.readline()
        if not first:
            return []
        text = ("" if _is_header(first) else first) + handle.read()
        if not text.strip():
            return []

        try:
            frame = pd.read_csv(
                io.StringIO(text),
                sep="\t",
                header=None,
                names=list(HEADER),
                usecols=[0, 1, 2],
                dtype={"feature_1": str, "feature_2": str, "score": float},
                keep_default_na=False,
                float_precision="round_trip",
            )
        except (ValueError, pd.errors.ParserError) as e:
            raise ValueError(f"Malformed correlation file {name}: {e}") from e

    logger.info(f"Loaded {len(frame)} correlations from {name}.")
    return [
        SimilarityPair(a, b, float(s))
        for a, b, s in zip(frame["feature_1"], frame["feature_2"], frame["score"])
    ]
