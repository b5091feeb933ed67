# services/order_filters.py

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping

from config import DEFAULT_PAGE_SIZE

# attribute name -> query parameter the orders API expects
QUERY_KEYS = {
    "search": "search",
    "category": "category",
    "start_date": "startDate",
    "end_date": "endDate",
    "page": "page",
    "page_size": "pageSize",
}
ATTR_BY_QUERY_KEY = {v: k for k, v in QUERY_KEYS.items()}

# everything except page; changing any of these sends the user back to page 1
FILTER_FIELDS = ("search", "category", "start_date", "end_date", "page_size")


@dataclass(frozen=True)
class FilterState:
    search: str = ""
    category: str = ""
    start_date: str = ""
    end_date: str = ""
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


def _attr(key: str) -> str:
    attr = ATTR_BY_QUERY_KEY.get(key, key)
    if attr not in QUERY_KEYS:
        raise KeyError(f"Unknown filter field: {key}")
    return attr


def _positive_int(value, default: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return n if n >= 1 else default


def set_page(state: FilterState, page) -> FilterState:
    return replace(state, page=_positive_int(page, 1))


def set_filter(state: FilterState, key: str, value: Any) -> FilterState:
    """New state with `key` updated and page forced back to 1 (page itself excepted)."""
    attr = _attr(key)
    if attr == "page":
        return set_page(state, value)
    if attr == "page_size":
        value = _positive_int(value, DEFAULT_PAGE_SIZE)
    else:
        value = "" if value is None else str(value).strip()
    return replace(state, **{attr: value, "page": 1})


def from_args(args: Mapping[str, Any], previous: FilterState) -> FilterState:
    """
    Apply browser query args on top of the previous state.

    Keys missing from args keep their previous value. If any filter field
    actually changed, page is reset to 1 and an incoming `page` is ignored.
    """
    state = previous
    changed = False
    for attr in FILTER_FIELDS:
        qkey = QUERY_KEYS[attr]
        if qkey not in args:
            continue
        candidate = set_filter(state, attr, args.get(qkey))
        if getattr(candidate, attr) != getattr(state, attr):
            state = candidate
            changed = True

    if not changed and "page" in args:
        state = set_page(state, args.get("page"))
    return state


def to_query(state: FilterState) -> Dict[str, Any]:
    out = {}
    for attr, qkey in QUERY_KEYS.items():
        value = getattr(state, attr)
        if value is None or value == "":
            continue
        out[qkey] = value
    return out


def total_pages(total: int, page_size: int | None = None) -> int:
    size = page_size or DEFAULT_PAGE_SIZE
    return max(1, math.ceil(max(total, 0) / size))


@dataclass(frozen=True)
class Pagination:
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.page_size)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def first_row(self) -> int:
        if self.total == 0:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def last_row(self) -> int:
        return min(self.page * self.page_size, self.total)

    @property
    def pages(self) -> range:
        return range(1, self.total_pages + 1)
