"""
logscope Test Suite - Bucket Aggregator
=======================================
Tests for bucket alignment and the five reduction modes.
"""

import random
from datetime import datetime, timedelta

import pytest

from logscope.analytics.aggregate import BucketAggregator, aggregate, align_to_bucket
from logscope.core.schema import AggregateMode, Metric, RecordCategory

T0 = datetime(2025, 11, 30, 3, 0, 0)
STEP = timedelta(minutes=10)


def _m(name, minutes, value, category=RecordCategory.STATISTICS):
    return Metric(category, T0 + timedelta(minutes=minutes), name, value)


def _by_bucket(metrics):
    return {(m.time, m.name, m.source_category): m.value for m in metrics}


class TestAlignment:
    """Tests for align_to_bucket."""

    def test_floor_to_step(self):
        t = datetime(2025, 11, 30, 3, 7, 59, 999999)
        assert align_to_bucket(t, STEP) == datetime(2025, 11, 30, 3, 0, 0)

    def test_hour_step(self):
        t = datetime(2025, 11, 30, 3, 59, 0)
        assert align_to_bucket(t, timedelta(hours=1)) == datetime(2025, 11, 30, 3, 0, 0)

    def test_non_positive_step_truncates_seconds(self):
        t = datetime(2025, 11, 30, 3, 7, 59, 123456)
        assert align_to_bucket(t, timedelta(0)) == datetime(2025, 11, 30, 3, 7, 59)

    def test_result_has_no_fraction(self):
        t = datetime(2025, 11, 30, 3, 7, 59, 999999)
        assert align_to_bucket(t, timedelta(milliseconds=1500)).microsecond == 0

    @pytest.mark.parametrize("step", [timedelta(seconds=1), timedelta(seconds=7), STEP, timedelta(hours=1)])
    def test_aligned_time_is_not_after_point(self, step):
        rng = random.Random(7)
        for _ in range(100):
            t = T0 + timedelta(microseconds=rng.randrange(0, 86400 * 1000000))
            aligned = align_to_bucket(t, step)
            assert aligned <= t
            assert t - aligned < step + timedelta(seconds=1)


class TestReductionModes:
    """Tests for COUNT, SUM, FIRST and AVG."""

    def test_sum(self):
        out = aggregate([_m("X", 1, 2.0), _m("X", 5, 3.0), _m("X", 12, 4.0)], STEP, AggregateMode.SUM)
        assert _by_bucket(out) == {
            (T0, "X_Sum", RecordCategory.STATISTICS): 5.0,
            (T0 + STEP, "X_Sum", RecordCategory.STATISTICS): 4.0,
        }

    def test_count(self):
        out = aggregate([_m("X", 1, 2.0), _m("X", 5, 3.0)], STEP, AggregateMode.COUNT)
        assert [(m.name, m.value) for m in out] == [("X_Count", 2.0)]

    def test_avg(self):
        out = aggregate([_m("X", 1, 2.0), _m("X", 5, 3.0)], STEP, AggregateMode.AVG)
        assert [(m.name, m.value) for m in out] == [("X_Avg", 2.5)]

    def test_first_is_earliest_not_first_seen(self):
        metrics = [_m("X", 5, 3.0), _m("X", 1, 2.0), _m("X", 8, 9.0)]
        out = aggregate(metrics, STEP, AggregateMode.FIRST)
        assert [(m.name, m.value) for m in out] == [("X_First", 2.0)]

    def test_default_mode_is_sum(self):
        agg = BucketAggregator(STEP)
        assert agg.mode is AggregateMode.SUM
        assert agg.group_by_category is True

    def test_unset_time_dropped(self):
        metrics = [_m("X", 1, 2.0), Metric(RecordCategory.STATISTICS, None, "X", 100.0)]
        out = aggregate(metrics, STEP, AggregateMode.SUM)
        assert [m.value for m in out] == [2.0]

    @pytest.mark.parametrize("mode", list(AggregateMode))
    def test_unset_time_dropped_in_every_mode(self, mode):
        timed = [_m("X", 1, 2.0), _m("X", 3, 5.0), _m("X", 14, 6.0)]
        untimed = [Metric(RecordCategory.STATISTICS, None, "X", 100.0)]

        with_unset = _by_bucket(aggregate(untimed + timed + untimed, STEP, mode))
        assert with_unset == _by_bucket(aggregate(timed, STEP, mode))

    def test_categories_kept_apart(self):
        metrics = [_m("X", 1, 1.0, RecordCategory.DUMP), _m("X", 2, 2.0, RecordCategory.STATISTICS)]
        out = aggregate(metrics, STEP, AggregateMode.SUM, group_by_category=True)
        assert _by_bucket(out) == {
            (T0, "X_Sum", RecordCategory.DUMP): 1.0,
            (T0, "X_Sum", RecordCategory.STATISTICS): 2.0,
        }

    def test_categories_merged_under_other(self):
        metrics = [_m("X", 1, 1.0, RecordCategory.DUMP), _m("X", 2, 2.0, RecordCategory.STATISTICS)]
        out = aggregate(metrics, STEP, AggregateMode.SUM, group_by_category=False)
        assert _by_bucket(out) == {(T0, "X_Sum", RecordCategory.OTHER): 3.0}

    def test_bucket_times_are_aligned(self, sample_metrics):
        for mode in (AggregateMode.COUNT, AggregateMode.SUM, AggregateMode.FIRST, AggregateMode.AVG, AggregateMode.DELTA):
            for m in aggregate(sample_metrics, STEP, mode):
                assert m.time == align_to_bucket(m.time, STEP)
                assert m.name.endswith(mode.suffix)


class TestDeltaMode:
    """Tests for per-series increments."""

    def test_increments_assigned_to_own_bucket(self):
        metrics = [_m("C", 1, 100.0), _m("C", 4, 130.0), _m("C", 12, 180.0)]
        out = aggregate(metrics, STEP, AggregateMode.DELTA)
        assert _by_bucket(out) == {
            (T0, "C_Delta", RecordCategory.STATISTICS): 30.0,
            (T0 + STEP, "C_Delta", RecordCategory.STATISTICS): 50.0,
        }

    def test_first_point_contributes_zero(self):
        out = aggregate([_m("C", 1, 500.0)], STEP, AggregateMode.DELTA)
        assert [m.value for m in out] == [0.0]

    def test_input_order_does_not_matter(self):
        metrics = [_m("C", i, float(i * i)) for i in range(30)]
        shuffled = list(metrics)
        random.Random(3).shuffle(shuffled)

        expected = _by_bucket(aggregate(metrics, STEP, AggregateMode.DELTA))
        assert _by_bucket(aggregate(shuffled, STEP, AggregateMode.DELTA)) == expected

    def test_bucket_sum_equals_last_minus_first(self):
        rng = random.Random(11)
        values = [rng.uniform(0, 1000) for _ in range(50)]
        metrics = [_m("C", i * 2, v) for i, v in enumerate(values)]

        out = aggregate(metrics, STEP, AggregateMode.DELTA)
        assert sum(m.value for m in out) == pytest.approx(values[-1] - values[0])

    def test_not_computed_from_bucket_sums(self):
        """Two points in one bucket and one in the next: deltas, not sum differences."""
        metrics = [_m("C", 1, 10.0), _m("C", 2, 20.0), _m("C", 11, 25.0)]
        out = _by_bucket(aggregate(metrics, STEP, AggregateMode.DELTA))
        assert out[(T0, "C_Delta", RecordCategory.STATISTICS)] == 10.0
        assert out[(T0 + STEP, "C_Delta", RecordCategory.STATISTICS)] == 5.0

    def test_series_split_by_category(self):
        metrics = [
            _m("C", 1, 10.0, RecordCategory.DUMP),
            _m("C", 2, 100.0, RecordCategory.STATISTICS),
            _m("C", 3, 15.0, RecordCategory.DUMP),
            _m("C", 4, 160.0, RecordCategory.STATISTICS),
        ]
        out = _by_bucket(aggregate(metrics, STEP, AggregateMode.DELTA, group_by_category=True))
        assert out == {
            (T0, "C_Delta", RecordCategory.DUMP): 5.0,
            (T0, "C_Delta", RecordCategory.STATISTICS): 60.0,
        }

    def test_series_merged_without_categories(self):
        metrics = [
            _m("C", 1, 10.0, RecordCategory.DUMP),
            _m("C", 2, 100.0, RecordCategory.STATISTICS),
        ]
        out = _by_bucket(aggregate(metrics, STEP, AggregateMode.DELTA, group_by_category=False))
        assert out == {(T0, "C_Delta", RecordCategory.OTHER): 90.0}


class TestModeRelations:
    """Cross-mode properties over many buckets and series."""

    @pytest.fixture
    def random_metrics(self):
        rng = random.Random(23)
        categories = [RecordCategory.STATISTICS, RecordCategory.DUMP]
        return [
            _m(rng.choice(["A", "B", "C"]), rng.uniform(0, 120), rng.uniform(-50, 500), rng.choice(categories))
            for _ in range(400)
        ]

    @staticmethod
    def _by_series(metrics, mode):
        size = len(mode.suffix)
        return {(m.time, m.name[:-size], m.source_category): m.value for m in metrics}

    @pytest.mark.parametrize("group_by_category", [True, False])
    def test_sum_of_ones_equals_count(self, random_metrics, group_by_category):
        ones = [Metric(m.source_category, m.time, m.name, 1.0) for m in random_metrics]

        sums = self._by_series(aggregate(ones, STEP, AggregateMode.SUM, group_by_category), AggregateMode.SUM)
        counts = self._by_series(aggregate(ones, STEP, AggregateMode.COUNT, group_by_category), AggregateMode.COUNT)

        assert len(sums) > 10
        assert sums == counts

    @pytest.mark.parametrize("group_by_category", [True, False])
    def test_avg_is_sum_over_count(self, random_metrics, group_by_category):
        def run(mode):
            return self._by_series(aggregate(random_metrics, STEP, mode, group_by_category), mode)

        sums, counts, avgs = run(AggregateMode.SUM), run(AggregateMode.COUNT), run(AggregateMode.AVG)

        assert avgs.keys() == sums.keys() == counts.keys()
        for key, avg in avgs.items():
            assert avg == pytest.approx(sums[key] / counts[key])
