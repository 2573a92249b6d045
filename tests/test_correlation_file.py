"""Tests for the tab-delimited correlation interchange file."""

import io

import pytest

from coexpress.io.correlation_file import (
    CorrelationFileWriter,
    CorrelationStreamWriter,
    load_correlations,
    save_correlations,
)
from coexpress.similarity.sinks import SimilarityPair


class TestCorrelationFileWriter:

    def test_writes_header_and_pairs(self, tmp_path):
        path = tmp_path / "corr.tbl"
        with CorrelationFileWriter(path) as writer:
            writer.add_similarity("fig|1.1.peg.1", "fig|1.1.peg.2", 0.5)
            writer.add_similarity("fig|1.1.peg.1", "fig|1.1.peg.3", -0.25)
        lines = path.read_text().splitlines()
        assert lines == [
            "feature_1\tfeature_2\tscore",
            "fig|1.1.peg.1\tfig|1.1.peg.2\t0.5",
            "fig|1.1.peg.1\tfig|1.1.peg.3\t-0.25",
        ]
        assert writer.count == 2

    def test_scores_load_back_exactly(self, tmp_path):
        pairs = [SimilarityPair("a", "b", 0.1 + 0.2), SimilarityPair("a", "c", 1 / 3)]
        path = tmp_path / "corr.tbl"
        assert save_correlations(pairs, path) == 2
        assert load_correlations(path) == pairs

    def test_failed_write_leaves_no_file(self, tmp_path):
        path = tmp_path / "corr.tbl"
        with pytest.raises(RuntimeError):
            with CorrelationFileWriter(path) as writer:
                writer.add_similarity("a", "b", 0.5)
                raise RuntimeError("interrupted")
        assert not path.exists()
        assert list(tmp_path.iterdir()) == []

    def test_requires_context_manager(self, tmp_path):
        with pytest.raises(RuntimeError):
            CorrelationFileWriter(tmp_path / "x.tbl").add_similarity("a", "b", 0.5)


class TestLoadCorrelations:

    def test_file_without_header(self, tmp_path):
        path = tmp_path / "corr.tbl"
        path.write_text("a\tb\t0.75\nc\td\t-1.0\n")
        assert load_correlations(path) == [
            SimilarityPair("a", "b", 0.75),
            SimilarityPair("c", "d", -1.0),
        ]

    def test_reads_from_stream(self):
        stream = io.StringIO("feature_1\tfeature_2\tscore\nx\ty\t0.95\n")
        assert load_correlations(stream) == [SimilarityPair("x", "y", 0.95)]

    def test_stream_writer_output_loads(self):
        buffer = io.StringIO()
        writer = CorrelationStreamWriter(buffer)
        writer.add_similarity("p", "q", 0.125)
        buffer.seek(0)
        assert load_correlations(buffer) == [SimilarityPair("p", "q", 0.125)]

    def test_header_only_and_empty(self, tmp_path):
        empty = tmp_path / "empty.tbl"
        empty.write_text("")
        header_only = tmp_path / "header.tbl"
        header_only.write_text("feature_1\tfeature_2\tscore\n")
        assert load_correlations(empty) == []
        assert load_correlations(header_only) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_correlations(tmp_path / "nope.tbl")

    def test_malformed_line(self):
        with pytest.raises(ValueError):
            load_correlations(io.StringIO("a\tb\n"))

    def test_non_numeric_score(self):
        with pytest.raises(ValueError):
            load_correlations(io.StringIO("a\tb\t0.5\nc\td\thigh\n"))
