"""Period aggregation for metric charts.

A metric history is a list of TimePoint (calendar date + value). Charts show it
either raw (day) or collapsed into week / month / year buckets, each bucket
carrying the mean value and the middle date of its members.

Two yearly policies exist:
  - "calendar": one bucket per calendar year
  - "rolling":  trailing 12-point moving average (N - 11 buckets for N points)
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Hashable, Iterable, List, Sequence, Tuple

import numpy as np

ROLLING_WINDOW = 12

_UNIT_ALIASES = {
    "day": "day", "1D": "day",
    "week": "week", "1W": "week",
    "month": "month", "1M": "month",
    "year": "year", "1Y": "year",
}

@dataclass(frozen=True)
class TimePoint:
    date: date
    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", _as_date(self.date))

@dataclass(frozen=True)
class PeriodBucket:
    bucket_key: str
    representative_date: date
    mean_value: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "key": self.bucket_key,
            "time": self.representative_date.isoformat(),
            "value": self.mean_value,
        }

def _as_date(d: date) -> date:
    return d.date() if isinstance(d, datetime) else d

def week_number(d: date) -> int:
    """ISO-8601 week number (1..53).

    The date is moved to the Thursday of its week before the year is taken, so
    early-January days can belong to week 52/53 of the previous year and late
    December days to week 1 of the next.
    """
    d = _as_date(d)
    thursday = d + timedelta(days=4 - d.isoweekday())
    year_start = date(thursday.year, 1, 1)
    return math.ceil(((thursday - year_start).days + 1) / 7)

def iso_week_year(d: date) -> int:
    d = _as_date(d)
    return (d + timedelta(days=4 - d.isoweekday())).year

def normalize_unit(unit: str) -> str:
    try:
        return _UNIT_ALIASES[unit]
    except KeyError:
        raise ValueError(f"Unknown period unit: {unit}") from None

def finite_points(series: Iterable[TimePoint]) -> List[TimePoint]:
    """Drop non-finite values so a bad row never turns a whole chart into NaN."""
    points = list(series)
    out = [p for p in points if p.value is not None and math.isfinite(p.value)]
    dropped = len(points) - len(out)
    if dropped:
        logging.warning("dropped %s non-finite points before aggregation", dropped)
    return out

def sort_points(series: Iterable[TimePoint]) -> List[TimePoint]:
    # value is a tie-breaker so equal dates order the same regardless of input order
    return sorted(series, key=lambda p: (p.date, p.value))

def dedupe_dates(points: Sequence[TimePoint]) -> List[TimePoint]:
    """One point per date (the larger value wins), ascending by date."""
    by_date: Dict[date, float] = {}
    for p in points:
        prev = by_date.get(p.date)
        if prev is None or p.value > prev:
            by_date[p.date] = p.value
    return [TimePoint(d, by_date[d]) for d in sorted(by_date)]

def _group(points: Sequence[TimePoint], key_fn: Callable[[date], Tuple[Hashable, str]]) -> List[PeriodBucket]:
    groups: Dict[Hashable, Tuple[str, List[TimePoint]]] = {}
    for p in points:
        gk, label = key_fn(p.date)
        if gk not in groups:
            groups[gk] = (label, [])
        groups[gk][1].append(p)

    buckets: List[PeriodBucket] = []
    for label, members in groups.values():
        values = np.asarray([m.value for m in members], dtype=float)
        middle = members[len(members) // 2].date
        buckets.append(PeriodBucket(label, middle, float(values.sum() / len(values))))
    buckets.sort(key=lambda b: (b.representative_date, b.bucket_key))
    return buckets

def _week_key(d: date) -> Tuple[Hashable, str]:
    y, w = iso_week_year(d), week_number(d)
    return (y, w), f"{y}-W{w:02d}"

def _month_key(d: date) -> Tuple[Hashable, str]:
    return (d.year, d.month), f"{d.year}-{d.month:02d}"

def _year_key(d: date) -> Tuple[Hashable, str]:
    return d.year, str(d.year)

def rolling_mean(values: Sequence[float], period: int) -> np.ndarray:
    """Trailing mean aligned to each index (NaN until enough points)."""
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    out = np.full(n, np.nan)
    if n < period or period <= 0:
        return out
    for i in range(period - 1, n):
        out[i] = np.mean(arr[i - period + 1 : i + 1])
    return out

def rolling_yearly(series: Iterable[TimePoint], window: int = ROLLING_WINDOW) -> List[PeriodBucket]:
    """Trailing `window`-point moving average.

    Every index i >= window-1 of the sorted series yields one bucket whose date is
    the middle element of points[i-window+1 .. i] and whose key is the date of
    points[i]. Repeated dates are collapsed first so keys stay unique.
    Too few points -> [].
    """
    points = dedupe_dates(finite_points(series))
    if len(points) < window:
        return []
    means = rolling_mean([p.value for p in points], window)
    out: List[PeriodBucket] = []
    for i in range(window - 1, len(points)):
        members = points[i - window + 1 : i + 1]
        out.append(PeriodBucket(points[i].date.isoformat(), members[window // 2].date, float(means[i])))
    return out

def aggregate_by_period(series: Iterable[TimePoint], unit: str, yearly: str = "calendar") -> List[PeriodBucket]:
    """Collapse a series into chart buckets.

    Parameters:
      - unit: day | week | month | year (or 1D/1W/1M/1Y)
      - yearly: "calendar" or "rolling"; only consulted when unit is year

    Input order does not matter. Output is ascending by representative date.
    """
    unit = normalize_unit(unit)
    if unit == "year" and yearly == "rolling":
        return rolling_yearly(series)
    if yearly not in ("calendar", "rolling"):
        raise ValueError(f"Unknown yearly policy: {yearly}")

    points = sort_points(finite_points(series))
    if not points:
        return []
    if unit == "day":
        return [PeriodBucket(p.date.isoformat(), p.date, float(p.value)) for p in dedupe_dates(points)]
    if unit == "week":
        return _group(points, _week_key)
    if unit == "month":
        return _group(points, _month_key)
    return _group(points, _year_key)
