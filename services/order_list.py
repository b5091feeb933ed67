# services/order_list.py

import threading
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from config import VIEW_CACHE_SIZE
from exceptions import AuthenticationRequired, GatewayError
from models import Category, ListFailure, ListResult, ListSuccess, Order, UNKNOWN_CATEGORY
from services.order_filters import FilterState, Pagination, from_args, set_filter, set_page, to_query
from logger import get_logger

log = get_logger("order_list")

FETCH_FAILED = "Failed to fetch orders"


def _rows(items) -> List[Order]:
    return [Order.from_api(r) for r in items if isinstance(r, dict)]


def normalize_response(payload: Any) -> ListSuccess:
    """
    Turn whatever GET /orders returned into records + total.

    A bare list is the current page only, so its length is the best total
    available. The {data, total} envelope carries the real cross-page total.
    Anything else becomes an empty page.
    """
    if isinstance(payload, list):
        records = _rows(payload)
        return ListSuccess(records=records, total=len(records))

    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        records = _rows(payload["data"])
        try:
            total = int(payload.get("total"))
        except (TypeError, ValueError):
            total = len(records)
        return ListSuccess(records=records, total=max(total, len(records)))

    log.warning(f"Unexpected /orders response shape ({type(payload).__name__}); treating as empty")
    return ListSuccess(records=[], total=0)


def fetch_orders(orders_api, filters: FilterState) -> ListResult:
    """Never raises, except for a 401 which has to reach the login redirect."""
    try:
        payload = orders_api.list(to_query(filters))
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"Order list fetch failed (filters={to_query(filters)}): {e}")
        return ListFailure(reason=str(e) or FETCH_FAILED)
    return normalize_response(payload)


def category_name(category, categories: Optional[List[Category]]) -> str:
    if isinstance(category, Category):
        return category.name or UNKNOWN_CATEGORY
    if isinstance(category, dict):
        return category.get("name") or UNKNOWN_CATEGORY
    if isinstance(category, str) and categories:
        for cat in categories:
            if cat.id == category:
                return cat.name or UNKNOWN_CATEGORY
    return UNKNOWN_CATEGORY


class OrderListState:
    """
    Filters, current page of orders and categories for one open order list.

    Each retrieval takes a ticket from begin(); apply() only accepts the
    result for the most recently issued ticket, so a slow response for an
    older filter can never overwrite a newer one. A failed fetch leaves the
    last rendered orders in place and queues an error notification.
    """

    def __init__(self, filters: Optional[FilterState] = None):
        self.filters = filters or FilterState()
        self.orders: List[Order] = []
        self.total = 0
        self.categories: Optional[List[Category]] = None
        self.notifications: List[tuple] = []
        self._lock = threading.Lock()
        self._issued = 0

    # ---- filter state ----
    def set_filter(self, key: str, value) -> FilterState:
        with self._lock:
            self.filters = set_filter(self.filters, key, value)
            return self.filters

    def set_page(self, page) -> FilterState:
        with self._lock:
            self.filters = set_page(self.filters, page)
            return self.filters

    def update_from_args(self, args) -> FilterState:
        with self._lock:
            self.filters = from_args(args, self.filters)
            return self.filters

    # ---- retrieval ----
    def begin(self) -> tuple:
        with self._lock:
            self._issued += 1
            return self._issued, self.filters

    def apply(self, seq: int, result: ListResult) -> bool:
        with self._lock:
            if seq != self._issued:
                log.info(f"Discarding stale order list response #{seq} (latest #{self._issued})")
                return False
            if result.ok:
                self.orders = list(result.records)
                self.total = result.total
            else:
                self.notifications.append(("error", FETCH_FAILED))
            return True

    def refresh(self, orders_api) -> ListResult:
        seq, filters = self.begin()
        result = fetch_orders(orders_api, filters)
        self.apply(seq, result)
        return result

    def load_categories(self, category_api) -> None:
        try:
            categories = category_api.list()
        except AuthenticationRequired:
            raise
        except GatewayError as e:
            # names fall back to Unknown Category until a later load succeeds
            log.warning(f"Category fetch failed: {e}")
            return
        with self._lock:
            self.categories = categories

    def load(self, orders_api, category_api) -> ListResult:
        # both fetches land before anything is rendered
        self.load_categories(category_api)
        return self.refresh(orders_api)

    # ---- rendering ----
    def category_name(self, category) -> str:
        return category_name(category, self.categories)

    def drain_notifications(self) -> List[tuple]:
        with self._lock:
            out, self.notifications = self.notifications, []
            return out

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            categories = list(self.categories or [])
            return {
                "filters": self.filters,
                "orders": list(self.orders),
                "total": self.total,
                "categories": categories,
                "pagination": Pagination(self.filters.page, self.filters.page_size, self.total),
                # aligned with orders by position; ids may be missing
                "category_names": [category_name(o.category, categories) for o in self.orders],
            }


class ViewRegistry:
    """Bounded LRU of OrderListState keyed by the browser's view id."""

    def __init__(self, max_size: int = VIEW_CACHE_SIZE):
        self.max_size = max_size
        self._views: "OrderedDict[str, OrderListState]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, view_id: str) -> OrderListState:
        with self._lock:
            state = self._views.get(view_id)
            if state is None:
                state = OrderListState()
                self._views[view_id] = state
            self._views.move_to_end(view_id)
            while len(self._views) > self.max_size:
                self._views.popitem(last=False)
            return state

    def discard(self, view_id: str) -> None:
        with self._lock:
            self._views.pop(view_id, None)

    def __len__(self) -> int:
        return len(self._views)
