"""Tests for period bucketing and the week number."""

import math
import random
from datetime import date, datetime, timedelta

import numpy as np
import pytest

from stock_metrics_engine.periods import (
    PeriodBucket,
    TimePoint,
    aggregate_by_period,
    iso_week_year,
    normalize_unit,
    rolling_mean,
    rolling_yearly,
    week_number,
)


def _monthly(n, start=date(2020, 1, 15)):
    out = []
    y, m = start.year, start.month
    for i in range(n):
        out.append(TimePoint(date(y, m, 15), float(i + 1)))
        m += 1
        if m > 12:
            y, m = y + 1, 1
    return out


class TestWeekNumber:
    def test_first_of_january_2021_belongs_to_week_53(self):
        assert week_number(date(2021, 1, 1)) == 53
        assert iso_week_year(date(2021, 1, 1)) == 2020

    def test_matches_isocalendar(self):
        d = date(2018, 12, 20)
        for _ in range(800):
            assert week_number(d) == d.isocalendar()[1]
            assert iso_week_year(d) == d.isocalendar()[0]
            d += timedelta(days=1)

    def test_late_december_can_be_week_one(self):
        assert week_number(date(2024, 12, 30)) == 1
        assert iso_week_year(date(2024, 12, 30)) == 2025


def test_normalize_unit_aliases():
    assert normalize_unit("1W") == "week"
    assert normalize_unit("month") == "month"
    with pytest.raises(ValueError):
        normalize_unit("quarter")


def test_output_independent_of_input_order():
    series = _monthly(30) + [TimePoint(date(2020, 1, 20), 7.0), TimePoint(date(2020, 1, 2), 3.0)]
    shuffled = list(series)
    random.Random(7).shuffle(shuffled)
    for unit in ("day", "week", "month", "year"):
        assert aggregate_by_period(shuffled, unit) == aggregate_by_period(sorted(series, key=lambda p: p.date), unit)
    assert aggregate_by_period(shuffled, "year", yearly="rolling") == aggregate_by_period(series, "year", yearly="rolling")


def test_month_bucket_coverage():
    series = [
        TimePoint(date(2023, 1, 3), 1.0),
        TimePoint(date(2023, 1, 20), 3.0),
        TimePoint(date(2023, 2, 1), 5.0),
        TimePoint(date(2024, 1, 9), 7.0),
    ]
    buckets = aggregate_by_period(series, "month")
    assert [b.bucket_key for b in buckets] == ["2023-01", "2023-02", "2024-01"]
    assert [b.mean_value for b in buckets] == [2.0, 5.0, 7.0]
    members = {"2023-01": 2, "2023-02": 1, "2024-01": 1}
    assert sum(b.mean_value * members[b.bucket_key] for b in buckets) == sum(p.value for p in series)


def test_single_bucket_mean_and_middle_date():
    series = [
        TimePoint(date(2023, 5, 2), 10.0),
        TimePoint(date(2023, 5, 10), 20.0),
        TimePoint(date(2023, 5, 28), 30.0),
    ]
    (bucket,) = aggregate_by_period(series, "month")
    assert bucket.mean_value == 20
    assert bucket.representative_date == date(2023, 5, 10)
    assert bucket.to_dict() == {"key": "2023-05", "time": "2023-05-10", "value": 20.0}


def test_week_keys_use_iso_year():
    buckets = aggregate_by_period([TimePoint(date(2021, 1, 1), 1.0), TimePoint(date(2021, 1, 4), 2.0)], "week")
    assert [b.bucket_key for b in buckets] == ["2020-W53", "2021-W01"]


def test_calendar_year_buckets():
    buckets = aggregate_by_period(_monthly(14), "year")
    assert [b.bucket_key for b in buckets] == ["2020", "2021"]
    assert buckets[0].mean_value == pytest.approx(6.5)
    assert buckets[1].mean_value == pytest.approx(13.5)


def test_day_unit_keeps_every_point():
    series = _monthly(3)
    assert [b.mean_value for b in aggregate_by_period(series, "day")] == [1.0, 2.0, 3.0]


@pytest.mark.parametrize("n", [12, 13, 30])
def test_rolling_yields_n_minus_11_buckets(n):
    assert len(aggregate_by_period(_monthly(n), "year", yearly="rolling")) == n - 11


@pytest.mark.parametrize("n", [0, 1, 11])
def test_rolling_short_series_is_empty(n):
    assert rolling_yearly(_monthly(n)) == []


def test_rolling_bucket_values():
    buckets = rolling_yearly(_monthly(13))
    assert buckets[0].mean_value == pytest.approx(6.5)
    assert buckets[1].mean_value == pytest.approx(7.5)
    # middle of points 0..11 is index 6 -> 2020-07-15
    assert buckets[0].representative_date == date(2020, 7, 15)
    assert buckets[0].bucket_key == "2020-12-15"


def test_rolling_mean_alignment():
    out = rolling_mean([1, 2, 3, 4], 2)
    assert math.isnan(out[0])
    assert list(out[1:]) == [1.5, 2.5, 3.5]


def test_non_finite_values_are_dropped():
    series = [TimePoint(date(2023, 1, 1), float("nan")), TimePoint(date(2023, 1, 2), 4.0)]
    assert aggregate_by_period(series, "month") == [PeriodBucket("2023-01", date(2023, 1, 2), 4.0)]


def test_unknown_yearly_policy():
    with pytest.raises(ValueError):
        aggregate_by_period(_monthly(3), "month", yearly="fiscal")


def test_empty_series():
    assert aggregate_by_period([], "week") == []


def _daily(n, start=date(2020, 1, 1), value=None):
    return [TimePoint(start + timedelta(days=i), float(i + 1) if value is None else value) for i in range(n)]


def test_rolling_keys_unique_with_repeated_dates():
    series = _daily(12) + [TimePoint(date(2020, 1, 12), 0.5)]
    buckets = aggregate_by_period(series, "year", yearly="rolling")
    keys = [b.bucket_key for b in buckets]
    assert keys == ["2020-01-12"]
    # larger value kept for the repeated date
    assert buckets[0].mean_value == pytest.approx(6.5)


def test_day_keys_unique_with_repeated_dates():
    series = [TimePoint(date(2023, 1, 2), 1.0), TimePoint(date(2023, 1, 2), 3.0), TimePoint(date(2023, 1, 3), 2.0)]
    buckets = aggregate_by_period(series, "day")
    assert [(b.bucket_key, b.mean_value) for b in buckets] == [("2023-01-02", 3.0), ("2023-01-03", 2.0)]


def test_rolling_mean_does_not_drift_on_long_series():
    buckets = rolling_yearly(_daily(3000, start=date(2010, 1, 1), value=0.1))
    assert len(buckets) == 2989
    expected = float(np.mean(np.full(12, 0.1)))
    assert all(b.mean_value == expected for b in buckets)
    assert expected == pytest.approx(0.1)


def test_datetime_points_are_treated_as_dates():
    assert TimePoint(datetime(2021, 1, 1, 23, 0), 1.0).date == date(2021, 1, 1)
    assert week_number(datetime(2021, 1, 1, 9, 30)) == 53
    assert iso_week_year(datetime(2021, 1, 1, 9, 30)) == 2020
    buckets = aggregate_by_period([TimePoint(datetime(2021, 1, 4, 15, 0), 2.0)], "week")
    assert buckets[0].bucket_key == "2021-W01"
    assert buckets[0].representative_date == date(2021, 1, 4)
