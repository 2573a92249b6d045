"""Tests for pairwise-filtered Pearson correlation and the correlation engine."""

import logging
import threading

import numpy as np
import pytest

from coexpress.config import CorrelationConfig
from coexpress.similarity.sinks import PairCollector
from coexpress.stats.correlation import (
    UNDEFINED_SCORE,
    CorrelationEngine,
    correlate_row,
    pearson_overlap,
)

from conftest import generate_synthetic_expression


def run_engine(vectors, n_workers=1, **kwargs):
    ids = [f"f{k}" for k in range(len(vectors))]
    engine = CorrelationEngine(ids, CorrelationConfig(n_workers=n_workers, progress=False, **kwargs))
    collector = PairCollector()
    count = engine.run(vectors, collector)
    return engine, collector, count


class TestPearsonOverlap:
    """Correlation over positions finite in both vectors."""

    def test_perfect_positive_and_negative(self):
        x = np.arange(10.0)
        assert pearson_overlap(x, 3 * x + 2) == pytest.approx(1.0)
        assert pearson_overlap(x, -x) == pytest.approx(-1.0)

    def test_matches_numpy_on_complete_data(self, rng):
        x = rng.normal(size=50)
        y = 0.5 * x + rng.normal(size=50)
        assert pearson_overlap(x, y) == pytest.approx(np.corrcoef(x, y)[0, 1])

    def test_missing_positions_are_dropped_pairwise(self):
        x = np.array([1.0, 2.0, 3.0, np.nan, 5.0])
        y = np.array([2.0, np.inf, 6.0, 8.0, 10.0])
        # Shared positions 0, 2, 4 are perfectly correlated.
        assert pearson_overlap(x, y) == pytest.approx(1.0)

    def test_too_few_shared_values_is_undefined(self):
        x = np.array([1.0, 2.0, np.nan, np.nan])
        y = np.array([1.0, 3.0, 5.0, 7.0])
        assert pearson_overlap(x, y) == UNDEFINED_SCORE
        assert pearson_overlap(x, y, min_overlap=2) == pytest.approx(1.0)

    def test_all_missing_is_undefined(self):
        x = np.full(6, np.nan)
        y = np.arange(6.0)
        assert pearson_overlap(x, y) == 0.0

    def test_zero_variance_is_undefined(self):
        assert pearson_overlap(np.full(5, 3.0), np.arange(5.0)) == 0.0

    def test_symmetric(self, rng):
        x = rng.normal(size=30)
        y = rng.normal(size=30)
        x[rng.random(30) < 0.2] = np.nan
        assert pearson_overlap(x, y) == pearson_overlap(y, x)

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            pearson_overlap([1.0, 2.0, 3.0], [1.0, 2.0])


class TestCorrelateRow:

    def test_agrees_with_scalar_version(self):
        data = generate_synthetic_expression(12, 25, missing_fraction=0.2, seed=3)
        scores, overlaps = correlate_row(data[0], data[1:])
        for k in range(11):
            expected = pearson_overlap(data[0], data[k + 1])
            got = UNDEFINED_SCORE if np.isnan(scores[k]) else scores[k]
            assert got == pytest.approx(expected, abs=1e-10)
        assert overlaps.shape == (11,)

    def test_undefined_marked_nan(self):
        x = np.array([1.0, 2.0, 3.0, 4.0])
        block = np.array([[np.nan] * 4, [5.0] * 4, [4.0, 3.0, 2.0, 1.0]])
        scores, overlaps = correlate_row(x, block)
        assert np.isnan(scores[0]) and np.isnan(scores[1])
        assert scores[2] == pytest.approx(-1.0)
        np.testing.assert_array_equal(overlaps, [0, 4, 4])


class TestCorrelationEngine:
    """Every unordered pair is emitted exactly once."""

    def test_emits_every_pair_once_in_canonical_order(self):
        vectors = generate_synthetic_expression(7, 20)
        _, collector, count = run_engine(vectors)

        assert count == 7 * 6 // 2
        assert len(collector) == count
        seen = set()
        for pair in collector:
            i, j = int(pair.feature_a[1:]), int(pair.feature_b[1:])
            assert i < j
            seen.add((i, j))
        assert len(seen) == count

    def test_scores_in_range(self):
        vectors = generate_synthetic_expression(10, 15, missing_fraction=0.3)
        _, collector, _ = run_engine(vectors)
        assert all(-1.0 <= p.score <= 1.0 for p in collector)

    def test_module_members_correlate_strongly(self):
        vectors = generate_synthetic_expression(6, 40, n_modules=3, missing_fraction=0.0)
        _, collector, _ = run_engine(vectors)
        scores = collector.as_dict()
        # Features 0 and 3 share module 0.
        assert scores[("f0", "f3")] > 0.9

    def test_threaded_matches_single_threaded(self):
        vectors = generate_synthetic_expression(40, 30, missing_fraction=0.1)
        _, serial, _ = run_engine(vectors, n_workers=1)
        _, threaded, _ = run_engine(vectors, n_workers=6)
        assert serial.as_dict() == threaded.as_dict()

    def test_undefined_pairs_are_zero_and_logged(self, caplog):
        vectors = np.array([
            [1.0, 2.0, 3.0, 4.0],
            [np.nan, np.nan, np.nan, np.nan],
            [2.0, 2.0, 2.0, 2.0],
        ])
        with caplog.at_level(logging.WARNING, logger="coexpress.stats.correlation"):
            _, collector, _ = run_engine(vectors)
        scores = collector.as_dict()
        assert scores[("f0", "f1")] == 0.0
        assert scores[("f0", "f2")] == 0.0
        assert scores[("f1", "f2")] == 0.0
        assert "Could not compute correlation" in caplog.text

    def test_fewer_than_two_features(self):
        _, collector, count = run_engine(np.ones((1, 5)))
        assert count == 0
        assert len(collector) == 0

    def test_shape_mismatch(self):
        engine = CorrelationEngine(["a", "b"], CorrelationConfig(progress=False))
        with pytest.raises(ValueError):
            engine.run(np.ones((3, 4)), PairCollector())

    def test_sink_failure_aborts_run(self):
        class FailingSink:
            def __init__(self):
                self.calls = 0

            def add_similarity(self, a, b, score):
                self.calls += 1
                if self.calls == 3:
                    raise RuntimeError("sink is full")

        engine = CorrelationEngine([f"f{k}" for k in range(6)],
                                   CorrelationConfig(n_workers=2, progress=False))
        with pytest.raises(RuntimeError, match="sink is full"):
            engine.run(generate_synthetic_expression(6, 10), FailingSink())

    def test_sink_calls_are_serialized(self):
        class CheckingSink:
            def __init__(self):
                self.active = threading.Lock()
                self.count = 0

            def add_similarity(self, a, b, score):
                assert self.active.acquire(blocking=False), "concurrent sink call"
                try:
                    self.count += 1
                finally:
                    self.active.release()

        sink = CheckingSink()
        engine = CorrelationEngine([f"f{k}" for k in range(30)],
                                   CorrelationConfig(n_workers=8, progress=False))
        engine.run(generate_synthetic_expression(30, 12), sink)
        assert sink.count == 30 * 29 // 2

    def test_progress_logging(self, caplog):
        vectors = generate_synthetic_expression(6, 10)
        with caplog.at_level(logging.INFO, logger="coexpress.stats.correlation"):
            run_engine(vectors, log_interval=5)
        assert "5 comparisons computed." in caplog.text
        assert "15 comparisons computed." in caplog.text
