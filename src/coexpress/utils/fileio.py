"""
Atomic file-write utilities.

Prevents corrupted output when a process is interrupted mid-write by
writing to a temporary file in the same directory and then performing an
atomic ``os.replace()`` (POSIX rename guarantee).
"""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from typing import IO, Iterator

import pandas as pd

__all__ = [
    'atomic_open',
    'atomic_write_csv',
]


@contextmanager
def atomic_open(path: str | os.PathLike) -> Iterator[IO[str]]:
    """Open a temp file for text writing; move it onto *path* on success.

    If the body raises, the temp file is removed and *path* is untouched.
    """
    path = str(path)
    dir_path = os.path.dirname(path) or "."
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False, newline=""
        ) as tmp:
            tmp_path = tmp.name
            yield tmp
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any failure
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_csv(path: str | os.PathLike, frame: pd.DataFrame, **kwargs) -> None:
    """Write a DataFrame as CSV atomically; kwargs go to ``DataFrame.to_csv``."""
    with atomic_open(path) as handle:
        frame.to_csv(handle, **kwargs)
