from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

# Ranking pages: page 1 shows 20 rows, every later page 100 rows.
FIRST_PAGE_SIZE = 20
PAGE_SIZE = 100

@dataclass(frozen=True)
class PageSlice:
    page: int
    page_size: int
    limit: int
    skip: int

def _coerce_page(page: Any) -> int:
    try:
        p = int(math.floor(float(page)))
    except (TypeError, ValueError, OverflowError):
        return 1
    return max(1, p)

def compute_mixed_pagination(page: Any) -> PageSlice:
    p = _coerce_page(page)
    if p == 1:
        return PageSlice(page=1, page_size=FIRST_PAGE_SIZE, limit=FIRST_PAGE_SIZE, skip=0)
    skip = FIRST_PAGE_SIZE + (p - 2) * PAGE_SIZE
    return PageSlice(page=p, page_size=PAGE_SIZE, limit=PAGE_SIZE, skip=skip)

def compute_total_pages_mixed(total_count: Any) -> int:
    try:
        count = max(0, int(total_count or 0))
    except (TypeError, ValueError):
        count = 0
    if count <= FIRST_PAGE_SIZE:
        return 1
    return 1 + math.ceil((count - FIRST_PAGE_SIZE) / PAGE_SIZE)
