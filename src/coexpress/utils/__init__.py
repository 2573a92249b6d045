"""Utility modules for file handling."""

from coexpress.utils.fileio import (
    atomic_open,
    atomic_write_csv,
)

__all__ = [
    'atomic_open',
    'atomic_write_csv',
]
