"""
I/O for expression samples, per-feature results and cached correlations.

Key pieces:
    - ExpressionStore: the storage boundary (protocol)
    - CsvExpressionStore: file-backed store over per-genome CSV files
    - CorrelationFileWriter / load_correlations: correlation interchange file
"""

from coexpress.io.store import (
    GENOME_ID_PATTERN,
    CsvExpressionStore,
    ExpressionStore,
    GenomeNotFoundError,
    SampleRecord,
    validate_genome_id,
)
from coexpress.io.correlation_file import (
    CorrelationStreamWriter,
    CorrelationFileWriter,
    load_correlations,
    save_correlations,
)

__all__ = [
    'GENOME_ID_PATTERN',
    'CsvExpressionStore',
    'ExpressionStore',
    'GenomeNotFoundError',
    'SampleRecord',
    'validate_genome_id',
    'CorrelationStreamWriter',
    'CorrelationFileWriter',
    'load_correlations',
    'save_correlations',
]
