"""Valuation-metric engine for Korean listed securities.

Core idea (per security, per metric: PER / PBR / EPS / BPS / DIV / DPS):
- Load the metric history from SQLite and drop null/invalid values
- Chart view: collapse the history into day / week / month / year buckets
  (bucket value = mean, bucket date = middle member); some metrics use a
  trailing 12-point rolling mean for the year view instead
- Key-metrics panel: latest value, 12M / 3Y / 5Y / 10Y / 20Y averages, min / max
Around it: ranking pages (20 rows, then 100 per page), search, CSV export,
sitemap chunks and a recently-viewed list.
"""

__version__ = "0.3.0"

__all__ = [
    "config",
    "db",
    "periods",
    "analysis",
    "metrics",
    "pagination",
    "sitemap",
    "exporter",
    "recent",
    "formatting",
]
