"""Period analysis ("key metrics" panel).

summarize() turns a metric history into:
  - one averaged value per lookback window (latest, 12M, 3Y, 5Y, 10Y, 20Y)
  - min / max over the whole history
  - the latest value

A window with no points inside it is left out of the report rather than shown
as 0, so the panel can tell "no data for 20 years" apart from "average of 0".
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import numpy as np

from .config import EngineConfig
from .periods import TimePoint, finite_points, sort_points

@dataclass(frozen=True)
class PeriodWindow:
    label: str
    months: int
    description: str = ""

    def __post_init__(self) -> None:
        if self.months < 0:
            raise ValueError(f"window months must be >= 0: {self.months}")

@dataclass(frozen=True)
class WindowValue:
    label: str
    value: float
    description: str = ""

@dataclass(frozen=True)
class PeriodReport:
    windows: Tuple[WindowValue, ...]
    min: float
    max: float
    latest_value: Optional[float]

    def window(self, label: str) -> Optional[WindowValue]:
        for w in self.windows:
            if w.label == label:
                return w
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "periods": [{"label": w.label, "value": w.value, "desc": w.description} for w in self.windows],
            "min": self.min,
            "max": self.max,
            "latest": self.latest_value,
        }

def default_windows(latest_label: str = "최근") -> Tuple[PeriodWindow, ...]:
    return (
        PeriodWindow(latest_label, 0, "현재 기준"),
        PeriodWindow("12개월 평균", 12, "직전 1년"),
        PeriodWindow("3년 평균", 36, "최근 3년"),
        PeriodWindow("5년 평균", 60, "최근 5년"),
        PeriodWindow("10년 평균", 120, "최근 10년"),
        PeriodWindow("20년 평균", 240, "최근 20년"),
    )

DEFAULT_WINDOWS = default_windows()

def subtract_months(d: date, months: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    idx = d.year * 12 + (d.month - 1) - months
    y, m = divmod(idx, 12)
    m += 1
    return date(y, m, min(d.day, calendar.monthrange(y, m)[1]))

def today(tz: Optional[str] = None) -> date:
    return datetime.now(ZoneInfo(tz or EngineConfig().tz)).date()

def _round(value: float, round_to: Optional[int]) -> float:
    return round(value, round_to) if round_to is not None else value

def summarize(
    series: Iterable[TimePoint],
    windows: Sequence[PeriodWindow] = DEFAULT_WINDOWS,
    *,
    reference_date: Optional[date] = None,
    round_to: Optional[int] = None,
    skip_zero: bool = False,
) -> Optional[PeriodReport]:
    """Build the period report for one metric history.

    Parameters:
      - reference_date: "today" for the lookback cutoffs (default: today in METRICS_TZ)
      - round_to: decimals for window values; None leaves them unrounded
      - skip_zero: ignore 0 values inside lookback windows (dividend series)

    Returns None when the series is empty.
    """
    points = sort_points(finite_points(series))
    if not points:
        return None

    ref = reference_date or today()
    latest = float(points[-1].value)
    values = np.asarray([p.value for p in points], dtype=float)

    out: List[WindowValue] = []
    for w in windows:
        if w.months == 0:
            out.append(WindowValue(w.label, _round(latest, round_to), w.description))
            continue
        cutoff = subtract_months(ref, w.months)
        subset = [p.value for p in points if p.date >= cutoff and not (skip_zero and p.value == 0)]
        if not subset:
            continue
        mean = float(np.mean(np.asarray(subset, dtype=float)))
        out.append(WindowValue(w.label, _round(mean, round_to), w.description))

    return PeriodReport(
        windows=tuple(out),
        min=float(values.min()),
        max=float(values.max()),
        latest_value=latest,
    )
