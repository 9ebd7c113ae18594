"""Sitemap paths and XML.

Paths come in three groups (core listing pages, security detail pages, company
pages); each group is split into files of at most SITEMAP_CHUNK_SIZE URLs.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple
from urllib.parse import quote
from xml.etree import ElementTree as ET

from .pagination import compute_total_pages_mixed

SITEMAP_CHUNK_SIZE = 5000
SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"

METRIC_BASE_PATHS: Tuple[Tuple[str, str], ...] = (
    ("marketcap", "/marketcap"),
    ("per", "/per"),
    ("pbr", "/pbr"),
    ("bps", "/bps"),
    ("eps", "/eps"),
    ("div", "/div"),
    ("dps", "/dps"),
)
SECURITY_DETAIL_SEGMENTS = ("marketcap", "per", "pbr", "bps", "eps", "div", "dps")
CORE_STATIC_PATHS = ("/", "/dashboard")
SEGMENTS = ("core", "securities", "companies")

def dedupe(paths: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(paths))

def ensure_leading_slash(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"

def _paged(base: str, total: int) -> List[str]:
    pages = compute_total_pages_mixed(total)
    return [base] + [f"{base}/{p}" for p in range(2, pages + 1)]

def core_paths(rank_counts: Mapping[str, int], company_count: int = 0) -> List[str]:
    """Static pages + every listing page (page 1 has no number in its URL)."""
    paths: List[str] = list(CORE_STATIC_PATHS)
    for metric, base in METRIC_BASE_PATHS:
        paths.extend(_paged(base, int(rank_counts.get(metric, 0))))
    paths.extend(_paged("/marketcaps", company_count))
    return dedupe(ensure_leading_slash(p) for p in paths)

def security_paths(codes: Iterable[str]) -> List[str]:
    out: List[str] = []
    for code in dedupe(codes):
        base = f"/security/{quote(str(code), safe='')}"
        out.append(base)
        out.extend(f"{base}/{seg}" for seg in SECURITY_DETAIL_SEGMENTS)
    return out

def company_paths(codes: Iterable[str]) -> List[str]:
    out: List[str] = []
    for code in dedupe(codes):
        base = f"/company/{quote(str(code), safe='')}"
        out.extend((base, f"{base}/marketcap"))
    return out

def chunk_paths(paths: Sequence[str], size: int = SITEMAP_CHUNK_SIZE) -> List[List[str]]:
    if size <= 0:
        raise ValueError(f"chunk size must be positive: {size}")
    return [list(paths[i : i + size]) for i in range(0, len(paths), size)]

def build_chunks(
    rank_counts: Mapping[str, int],
    company_count: int,
    security_codes: Iterable[str],
    company_codes: Iterable[str],
    size: int = SITEMAP_CHUNK_SIZE,
) -> Dict[str, List[List[str]]]:
    return {
        "core": chunk_paths(core_paths(rank_counts, company_count), size),
        "securities": chunk_paths(security_paths(security_codes), size),
        "companies": chunk_paths(company_paths(company_codes), size),
    }

def with_base_url(paths: Iterable[str], last_modified: datetime, base_url: str) -> List[Dict[str, object]]:
    base = base_url.rstrip("/")
    return [{"url": f"{base}{p}", "last_modified": last_modified} for p in paths]

def _lastmod(dt: datetime) -> str:
    return dt.date().isoformat() if isinstance(dt, datetime) else str(dt)

def _to_xml(root: ET.Element) -> str:
    body = ET.tostring(root, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}'

def render_urlset(entries: Iterable[Mapping[str, object]]) -> str:
    root = ET.Element("urlset", xmlns=SITEMAP_NS)
    for e in entries:
        url = ET.SubElement(root, "url")
        ET.SubElement(url, "loc").text = str(e["url"])
        if e.get("last_modified") is not None:
            ET.SubElement(url, "lastmod").text = _lastmod(e["last_modified"])  # type: ignore[arg-type]
    return _to_xml(root)

def sitemap_urls(chunks: Mapping[str, Sequence[Sequence[str]]], base_url: str) -> List[str]:
    """URLs of every chunk file: <base>/sitemaps/<segment>/<n>.xml (n from 1)."""
    base = base_url.rstrip("/")
    out: List[str] = []
    for segment in SEGMENTS:
        for n in range(1, len(chunks.get(segment, ())) + 1):
            out.append(f"{base}/sitemaps/{segment}/{n}.xml")
    return out

def render_sitemap_index(urls: Iterable[str], last_modified: datetime) -> str:
    root = ET.Element("sitemapindex", xmlns=SITEMAP_NS)
    for u in urls:
        sm = ET.SubElement(root, "sitemap")
        ET.SubElement(sm, "loc").text = u
        ET.SubElement(sm, "lastmod").text = _lastmod(last_modified)
    return _to_xml(root)
