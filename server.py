from __future__ import annotations

import logging
import time
from datetime import date, datetime
from typing import Any, Dict, Optional

import pandas as pd
from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from stock_metrics_engine.config import EngineConfig
from stock_metrics_engine.db import (
    RANK_METRICS,
    count_ranks,
    fetch_metric_history,
    fetch_rank_page,
    fetch_ranking_context,
    fetch_security_rank,
    get_security,
    list_company_ids,
    list_security_ids,
    search_securities,
    table_counts,
)
from stock_metrics_engine.exporter import export_filename, json_records, rows_to_csv, to_frame
from stock_metrics_engine.metrics import build_metric_view, get_profile
from stock_metrics_engine.pagination import compute_mixed_pagination, compute_total_pages_mixed
from stock_metrics_engine.sitemap import (
    SEGMENTS,
    build_chunks,
    render_sitemap_index,
    render_urlset,
    sitemap_urls,
    with_base_url,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

CFG = EngineConfig()
SITEMAP_CACHE_SEC = 3600
# Sitemap chunks need a full scan of securities/ranks; rebuild at most hourly.
_sitemap_cache: Dict[str, Any] = {"ts": 0.0, "db": None, "data": None}

app = Flask(__name__)
app.config.setdefault("DB_PATH", CFG.db_path)
app.config.setdefault("SITE_URL", CFG.site_url)
if CFG.cors_enabled:
    CORS(app, resources={r"/api/*": {"origins": "*"}})


def _db() -> str:
    return str(app.config["DB_PATH"])


def _bad_request(error: str, **extra: Any):
    return jsonify({"error": error, **extra}), 400


def _parse_as_of(text: Optional[str]) -> Optional[date]:
    if not text:
        return None
    return date.fromisoformat(text)


def _sitemap_chunks() -> Dict[str, Any]:
    now = time.time()
    db_path = _db()
    cached = _sitemap_cache.get("data")
    if cached is not None and _sitemap_cache.get("db") == db_path and now - float(_sitemap_cache["ts"]) < SITEMAP_CACHE_SEC:
        return cached
    counts = {m: count_ranks(db_path, m) for m in RANK_METRICS}
    company_ids = list_company_ids(db_path)
    data = build_chunks(counts, len(company_ids), list_security_ids(db_path), company_ids, size=CFG.sitemap_chunk_size)
    _sitemap_cache.update({"ts": now, "db": db_path, "data": data})
    return data


# ---------- API ----------
@app.get("/api/security/<security_id>/<metric>")
def security_metric(security_id: str, metric: str):
    """Chart buckets + key-metrics report for one security."""
    try:
        profile = get_profile(metric)
        as_of = _parse_as_of(request.args.get("as_of"))
        unit = request.args.get("unit", "month")
        sec = get_security(_db(), security_id)
        if sec is None:
            return jsonify({"error": "unknown_security", "security": security_id}), 404
        rows = fetch_metric_history(_db(), security_id, table=CFG.metric_table)
        view = build_metric_view(rows, profile, unit=unit, reference_date=as_of, tz=CFG.tz)
    except ValueError as exc:
        return _bad_request(str(exc))
    view["security"] = {k: sec.get(k) for k in ("security_id", "ticker", "name", "kor_name", "exchange")}
    view["rank"] = fetch_security_rank(_db(), security_id, profile.key)
    return jsonify(view)


@app.get("/api/security/<security_id>/rank-context/<metric>")
def security_rank_context(security_id: str, metric: str):
    try:
        size = max(1, min(50, int(request.args.get("size", 5))))
        items = fetch_ranking_context(_db(), security_id, metric, size=size)
    except ValueError as exc:
        return _bad_request(str(exc))
    return jsonify({"security_id": security_id, "metric": metric, "items": items})


def _rank_page(metric: str):
    page = request.args.get("page", 1)
    order = request.args.get("order", "asc")
    rows, latest = fetch_rank_page(_db(), metric, page=page, order=order)
    return rows, latest, page


@app.get("/api/rank/<metric>")
def rank(metric: str):
    try:
        rows, latest, page = _rank_page(metric)
    except ValueError as exc:
        return _bad_request(str(exc))
    total = count_ranks(_db(), metric)
    return jsonify(
        {
            "metric": metric,
            "page": compute_mixed_pagination(page).page,
            "total_pages": compute_total_pages_mixed(total),
            "latest_date": latest,
            "items": json_records(to_frame(rows)) if rows else [],
        }
    )


@app.get("/api/rank/<metric>/csv")
def rank_csv(metric: str):
    try:
        rows, latest, page = _rank_page(metric)
    except ValueError as exc:
        return _bad_request(str(exc))
    page_no = compute_mixed_pagination(page).page
    body = "\ufeff" + rows_to_csv(rows)
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(metric, page_no, latest)}"'},
    )


@app.get("/api/search")
def search():
    q = request.args.get("q", "")
    try:
        limit = max(1, min(100, int(request.args.get("limit", CFG.search_limit))))
    except ValueError:
        return _bad_request("invalid_limit")
    return jsonify({"query": q, "items": search_securities(_db(), q, limit=limit)})


@app.get("/status")
def status():
    counts = table_counts(_db())
    df = pd.DataFrame([{"table": k, "rows": v} for k, v in counts.items()])
    return jsonify({"tables": json_records(df), "db_path": _db()})


# ---------- Sitemap ----------
@app.get("/sitemap.xml")
def sitemap_index():
    chunks = _sitemap_chunks()
    xml = render_sitemap_index(sitemap_urls(chunks, app.config["SITE_URL"]), datetime.now())
    return Response(xml, mimetype="application/xml")


@app.get("/sitemaps/<segment>/<int:n>.xml")
def sitemap_chunk(segment: str, n: int):
    if segment not in SEGMENTS:
        return Response("not found", status=404)
    parts = _sitemap_chunks().get(segment) or []
    if n < 1 or n > len(parts):
        return Response("not found", status=404)
    xml = render_urlset(with_base_url(parts[n - 1], datetime.now(), app.config["SITE_URL"]))
    return Response(xml, mimetype="application/xml")


if __name__ == "__main__":
    app.run(host=CFG.server_host, port=CFG.server_port)
