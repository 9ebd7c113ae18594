from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .pagination import compute_mixed_pagination

RANK_METRICS = ("marketcap", "per", "pbr", "bps", "eps", "div", "dps")
HISTORY_FIELDS = ("bps", "per", "pbr", "eps", "div", "dps")

SCHEMA = """
CREATE TABLE IF NOT EXISTS company (
    company_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    kor_name TEXT,
    marketcap INTEGER
);
CREATE TABLE IF NOT EXISTS security (
    security_id TEXT PRIMARY KEY,
    company_id TEXT REFERENCES company(company_id),
    ticker TEXT NOT NULL,
    name TEXT NOT NULL,
    kor_name TEXT,
    exchange TEXT NOT NULL,
    type TEXT,
    delisting_date TEXT,
    marketcap INTEGER,
    per REAL, pbr REAL, eps REAL, bps REAL, div REAL, dps REAL
);
CREATE TABLE IF NOT EXISTS bppedd (
    security_id TEXT NOT NULL,
    date TEXT NOT NULL,
    ticker TEXT,
    exchange TEXT,
    bps REAL, per REAL, pbr REAL, eps REAL, div REAL, dps REAL,
    PRIMARY KEY (security_id, date)
);
CREATE TABLE IF NOT EXISTS security_rank (
    security_id TEXT NOT NULL,
    metric_type TEXT NOT NULL,
    rank_date TEXT NOT NULL,
    current_rank INTEGER,
    prior_rank INTEGER,
    value REAL,
    PRIMARY KEY (security_id, metric_type, rank_date)
);
CREATE INDEX IF NOT EXISTS security_rank_metric_date_idx ON security_rank(metric_type, rank_date);
"""

def connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout=5000;")
    return conn

def init_schema(db_path: str) -> None:
    conn = connect(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()

def _check_metric(metric: str) -> str:
    m = str(metric).lower()
    if m not in RANK_METRICS:
        raise ValueError(f"Unknown metric: {metric}")
    return m

def _rows(cur: sqlite3.Cursor) -> List[Dict[str, Any]]:
    return [dict(r) for r in cur.fetchall()]

def fetch_metric_history(db_path: str, security_id: str, table: str = "bppedd") -> List[Dict[str, Any]]:
    """Return [{date, bps, per, pbr, eps, div, dps}, ...] ordered by date ASC."""
    if not security_id:
        return []
    conn = connect(db_path)
    try:
        cur = conn.execute(
            f"SELECT date, {', '.join(HISTORY_FIELDS)} FROM {table} WHERE security_id=? ORDER BY date ASC",
            (security_id,),
        )
        return _rows(cur)
    except sqlite3.Error as exc:
        logging.warning("fetch_metric_history failed for %s: %s", security_id, exc)
        return []
    finally:
        conn.close()

def get_security(db_path: str, security_id: str) -> Optional[Dict[str, Any]]:
    conn = connect(db_path)
    try:
        row = conn.execute("SELECT * FROM security WHERE security_id=?", (security_id,)).fetchone()
        return dict(row) if row else None
    except sqlite3.Error as exc:
        logging.warning("get_security failed for %s: %s", security_id, exc)
        return None
    finally:
        conn.close()

def list_security_ids(db_path: str) -> List[str]:
    conn = connect(db_path)
    try:
        cur = conn.execute("SELECT security_id FROM security WHERE delisting_date IS NULL ORDER BY security_id")
        return [str(r[0]) for r in cur.fetchall()]
    except sqlite3.Error as exc:
        logging.warning("list_security_ids failed: %s", exc)
        return []
    finally:
        conn.close()

def list_company_ids(db_path: str) -> List[str]:
    conn = connect(db_path)
    try:
        cur = conn.execute("SELECT company_id FROM company ORDER BY company_id")
        return [str(r[0]) for r in cur.fetchall()]
    except sqlite3.Error as exc:
        logging.warning("list_company_ids failed: %s", exc)
        return []
    finally:
        conn.close()

def search_securities(db_path: str, query: str, limit: int = 20) -> List[Dict[str, Any]]:
    """Command-palette search over ticker / name / kor_name.

    Prefix matches rank ahead of substring matches, then market cap DESC.
    """
    q = str(query or "").strip()
    if not q:
        return []
    like = f"%{q}%"
    prefix = f"{q}%"
    conn = connect(db_path)
    try:
        cur = conn.execute(
            """
            SELECT security_id, ticker, name, kor_name, exchange, type
            FROM security
            WHERE delisting_date IS NULL
              AND (ticker LIKE ? OR name LIKE ? OR kor_name LIKE ?)
            ORDER BY
              CASE WHEN ticker LIKE ? OR name LIKE ? OR kor_name LIKE ? THEN 0 ELSE 1 END,
              COALESCE(marketcap, 0) DESC,
              security_id
            LIMIT ?
            """,
            (like, like, like, prefix, prefix, prefix, int(limit)),
        )
        return _rows(cur)
    except sqlite3.Error as exc:
        logging.warning("search_securities failed for %r: %s", q, exc)
        return []
    finally:
        conn.close()

def latest_rank_date(db_path: str, metric: str) -> Optional[str]:
    metric = _check_metric(metric)
    conn = connect(db_path)
    try:
        row = conn.execute(
            "SELECT MAX(rank_date) FROM security_rank WHERE metric_type=?", (metric,)
        ).fetchone()
        return str(row[0]) if row and row[0] else None
    except sqlite3.Error as exc:
        logging.warning("latest_rank_date failed for %s: %s", metric, exc)
        return None
    finally:
        conn.close()

def count_ranks(db_path: str, metric: str) -> int:
    """Ranked, still-listed securities on the latest rank date."""
    rank_date = latest_rank_date(db_path, metric)
    if not rank_date:
        return 0
    conn = connect(db_path)
    try:
        row = conn.execute(
            """
            SELECT COUNT(*)
            FROM security_rank r
            JOIN security s ON r.security_id = s.security_id
            WHERE r.metric_type=? AND r.rank_date=?
              AND s.delisting_date IS NULL AND r.current_rank IS NOT NULL
            """,
            (metric.lower(), rank_date),
        ).fetchone()
        return int(row[0] or 0)
    except sqlite3.Error as exc:
        logging.warning("count_ranks failed for %s: %s", metric, exc)
        return 0
    finally:
        conn.close()

_RANK_COLUMNS = """
    r.security_id, r.current_rank AS rank, r.prior_rank, r.value,
    s.ticker, s.name, s.kor_name, s.exchange, s.company_id
"""

def fetch_rank_page(db_path: str, metric: str, page: int = 1, order: str = "asc") -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """Return (rows, latest_rank_date) for one listing page."""
    if order not in ("asc", "desc"):
        raise ValueError(f"Unknown sort order: {order}")
    rank_date = latest_rank_date(db_path, metric)
    if not rank_date:
        return [], None
    sl = compute_mixed_pagination(page)
    conn = connect(db_path)
    try:
        cur = conn.execute(
            f"""
            SELECT {_RANK_COLUMNS}
            FROM security_rank r
            JOIN security s ON r.security_id = s.security_id
            WHERE r.metric_type=? AND r.rank_date=?
              AND s.delisting_date IS NULL AND r.current_rank IS NOT NULL
            ORDER BY r.current_rank {order.upper()}
            LIMIT ? OFFSET ?
            """,
            (metric.lower(), rank_date, sl.limit, sl.skip),
        )
        return _rows(cur), rank_date
    except sqlite3.Error as exc:
        logging.warning("fetch_rank_page failed for %s page=%s: %s", metric, page, exc)
        return [], rank_date
    finally:
        conn.close()

def fetch_security_rank(db_path: str, security_id: str, metric: str, rank_date: Optional[str] = None) -> Optional[int]:
    target = rank_date or latest_rank_date(db_path, metric)
    if not target:
        return None
    conn = connect(db_path)
    try:
        row = conn.execute(
            "SELECT current_rank FROM security_rank WHERE security_id=? AND metric_type=? AND rank_date=?",
            (security_id, metric.lower(), target),
        ).fetchone()
        return int(row[0]) if row and row[0] is not None else None
    except sqlite3.Error as exc:
        logging.warning("fetch_security_rank failed for %s/%s: %s", security_id, metric, exc)
        return None
    finally:
        conn.close()

def fetch_ranking_context(db_path: str, security_id: str, metric: str, size: int = 5) -> List[Dict[str, Any]]:
    """Neighbours of a security in a ranking: ranks [r - size, r + size]."""
    rank_date = latest_rank_date(db_path, metric)
    if not rank_date:
        return []
    current = fetch_security_rank(db_path, security_id, metric, rank_date)
    if current is None:
        return []
    lo, hi = max(1, current - size), current + size
    conn = connect(db_path)
    try:
        cur = conn.execute(
            f"""
            SELECT {_RANK_COLUMNS}
            FROM security_rank r
            JOIN security s ON r.security_id = s.security_id
            WHERE r.metric_type=? AND r.rank_date=? AND r.current_rank BETWEEN ? AND ?
            ORDER BY r.current_rank
            """,
            (metric.lower(), rank_date, lo, hi),
        )
        return _rows(cur)
    except sqlite3.Error as exc:
        logging.warning("fetch_ranking_context failed for %s/%s: %s", security_id, metric, exc)
        return []
    finally:
        conn.close()

def upsert_metric_rows(db_path: str, rows: Sequence[Tuple[Any, ...]], table: str = "bppedd") -> int:
    """rows: (security_id, date, ticker, exchange, bps, per, pbr, eps, div, dps)."""
    if not rows:
        return 0
    conn = connect(db_path)
    try:
        conn.executemany(
            f"INSERT OR REPLACE INTO {table}"
            "(security_id, date, ticker, exchange, bps, per, pbr, eps, div, dps) "
            "VALUES (?,?,?,?,?,?,?,?,?,?)",
            rows,
        )
        conn.commit()
        return len(rows)
    finally:
        conn.close()

def table_counts(db_path: str, tables: Iterable[str] = ("security", "company", "bppedd", "security_rank")) -> Dict[str, int]:
    conn = connect(db_path)
    out: Dict[str, int] = {}
    try:
        for t in tables:
            try:
                out[t] = int(conn.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0])
            except sqlite3.Error:
                out[t] = 0
        return out
    finally:
        conn.close()
