"""Tests for the period report."""

from datetime import date

import pytest

from stock_metrics_engine.analysis import (
    DEFAULT_WINDOWS,
    PeriodWindow,
    subtract_months,
    summarize,
)
from stock_metrics_engine.periods import TimePoint

REF = date(2024, 1, 1)
SERIES = [
    TimePoint(date(2021, 12, 31), 10.0),
    TimePoint(date(2022, 12, 31), 20.0),
    TimePoint(date(2023, 12, 31), 40.0),
]


def test_latest_and_three_year_average():
    windows = [PeriodWindow("latest", 0), PeriodWindow("3yr", 36)]
    report = summarize(SERIES, windows, reference_date=REF, round_to=2)

    assert report is not None
    assert report.latest_value == 40
    assert report.min == 10
    assert report.max == 40
    assert report.window("latest").value == 40
    assert report.window("3yr").value == 23.33


def test_latest_value_is_not_rounded():
    series = [TimePoint(date(2023, 12, 31), 12.345678)]
    windows = [PeriodWindow("latest", 0), PeriodWindow("12m", 12)]
    report = summarize(series, windows, reference_date=REF, round_to=2)

    assert report.window("latest").value == 12.35
    assert report.window("12m").value == 12.35
    assert report.latest_value == 12.345678
    assert report.min == report.max == 12.345678
    assert report.to_dict()["latest"] == 12.345678


def test_unrounded_when_round_to_is_none():
    report = summarize(SERIES, [PeriodWindow("3yr", 36)], reference_date=REF)
    assert report.window("3yr").value == pytest.approx(70 / 3)
    assert report.window("3yr").value != 23.33


def test_empty_window_is_omitted():
    series = [TimePoint(date(2019, 1, 1), 5.0)]
    report = summarize(series, [PeriodWindow("12m", 12), PeriodWindow("10y", 120)], reference_date=REF)
    assert report.window("12m") is None
    assert report.window("10y").value == 5.0
    assert [w.label for w in report.windows] == ["10y"]


def test_empty_series_returns_none():
    assert summarize([], DEFAULT_WINDOWS, reference_date=REF) is None


def test_min_max_ignore_windows():
    series = [TimePoint(date(1990, 1, 1), -3.0)] + SERIES
    report = summarize(series, [PeriodWindow("12m", 12)], reference_date=REF)
    assert report.min == -3.0
    assert report.window("12m").value == 40.0


def test_skip_zero_inside_windows():
    series = SERIES + [TimePoint(date(2023, 6, 30), 0.0)]
    kept = summarize(series, [PeriodWindow("12m", 12)], reference_date=REF)
    skipped = summarize(series, [PeriodWindow("12m", 12)], reference_date=REF, skip_zero=True)
    assert kept.window("12m").value == 20.0
    assert skipped.window("12m").value == 40.0
    assert skipped.min == 0.0


def test_default_windows_order():
    report = summarize(SERIES, reference_date=REF, round_to=2)
    assert [w.label for w in report.windows] == [
        "최근", "12개월 평균", "3년 평균", "5년 평균", "10년 평균", "20년 평균",
    ]
    assert report.to_dict()["periods"][2] == {"label": "3년 평균", "value": 23.33, "desc": "최근 3년"}


def test_negative_window_rejected():
    with pytest.raises(ValueError):
        PeriodWindow("bad", -1)


@pytest.mark.parametrize(
    "start,months,expected",
    [
        (date(2024, 1, 1), 36, date(2021, 1, 1)),
        (date(2024, 3, 31), 1, date(2024, 2, 29)),
        (date(2023, 3, 31), 13, date(2022, 2, 28)),
        (date(2024, 5, 15), 0, date(2024, 5, 15)),
    ],
)
def test_subtract_months(start, months, expected):
    assert subtract_months(start, months) == expected
