"""
Query building helpers: text search, sentinel-aware categorical filters,
pagination and stable sorting.
"""
import math
import re
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import Query
from pymongo import ASCENDING, DESCENDING

from errors import ValidationError

MAX_PAGE_SIZE = 100

# Trade-data rows tag sectors by MTN product code, not by name
SECTOR_PRODUCT_CODES = {
    "Seafood": "AG",
    "Textile": "NON_AG",
}


def text_search(term: Optional[str], fields: Iterable[str]) -> Optional[dict]:
    """Case-insensitive substring match OR'd across fields."""
    if not term or not term.strip():
        return None
    pattern = re.escape(term.strip())
    return {"$or": [{f: {"$regex": pattern, "$options": "i"}} for f in fields]}


def is_sentinel(value: Optional[str]) -> bool:
    if value is None:
        return True
    v = value.strip()
    return v == "" or v.lower() == "all" or v.startswith("All ")


def exact_filter(value: Optional[str]) -> Optional[str]:
    return None if is_sentinel(value) else value.strip()


def sector_product_code(sector: Optional[str]) -> Optional[str]:
    if not sector:
        return None
    return SECTOR_PRODUCT_CODES.get(sector)


def visible(filter_dict: Optional[dict] = None) -> dict:
    """Soft-deleted documents are never readable."""
    out = dict(filter_dict or {})
    out["isHidden"] = {"$ne": True}
    return out


class Pagination:
    def __init__(self, page: int = 1, limit: int = 20):
        self.page = page
        self.limit = limit

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> dict:
        return pagination_meta(self.page, self.limit, total)


def pagination_params(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> Pagination:
    return Pagination(page, limit)


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalRecords": total,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def build_sort(sort_by: Optional[str], order: Optional[str], allowed: Iterable[str],
               default: str = "createdAt", default_order: str = "desc") -> List[Tuple[str, int]]:
    allowed = set(allowed)
    field = sort_by or default
    if field not in allowed:
        raise ValidationError(f"sortBy must be one of: {', '.join(sorted(allowed))}")
    direction = (order or default_order).lower()
    if direction not in ("asc", "desc"):
        raise ValidationError("sortOrder must be one of: asc, desc")
    order_by = [(field, ASCENDING if direction == "asc" else DESCENDING)]
    if field != "createdAt":
        order_by.append(("createdAt", DESCENDING))
    return order_by


def sort_stage(order_by: List[Tuple[str, int]]) -> Dict[str, dict]:
    return {"$sort": dict(order_by)}


def combine(*parts: Optional[dict]) -> dict:
    out: dict = {}
    for part in parts:
        if part:
            if "$or" in part and "$or" in out:
                out.setdefault("$and", []).append({"$or": part["$or"]})
                part = {k: v for k, v in part.items() if k != "$or"}
            out.update(part)
    return out
