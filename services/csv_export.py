# services/csv_export.py

from dataclasses import replace
from datetime import date, datetime
from typing import List, Optional

from config import EXPORT_PAGE_SIZE, EXPORT_MAX_PAGES
from exceptions import ExportFailed
from models import Category, Order
from services.order_filters import FilterState
from services.order_list import category_name, fetch_orders
from logger import get_logger

log = get_logger("csv_export")

HEADER = ["Order ID", "Customer", "Category", "Date", "Source", "Amount"]


def format_date(value) -> str:
    """yyyy-MM-dd, or '' when the value is missing or unparseable."""
    if not value:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    s = str(value).strip()
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).strftime("%Y-%m-%d")
    except ValueError:
        log.warning(f"Unparseable order date {s!r}")
        return ""


def format_amount(value) -> str:
    try:
        return f"{float(value or 0):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def export_filename(today: Optional[date] = None) -> str:
    return f"orders-{(today or date.today()).strftime('%Y-%m-%d')}.csv"


def collect_orders(
    orders_api,
    filters: FilterState,
    page_size: int = EXPORT_PAGE_SIZE,
    max_pages: int = EXPORT_MAX_PAGES,
) -> List[Order]:
    """Every order matching `filters`, not just the visible page."""
    collected: List[Order] = []
    query = replace(filters, page=1, page_size=page_size)

    for page in range(1, max_pages + 1):
        query = replace(query, page=page)
        result = fetch_orders(orders_api, query)
        if not result.ok:
            raise ExportFailed(result.reason)

        collected.extend(result.records)
        if len(result.records) < page_size or len(collected) >= result.total:
            break
    else:
        log.warning(f"Export stopped at {max_pages} pages ({len(collected)} orders)")

    log.info(f"Collected {len(collected)} orders for export")
    return collected


def build_csv(orders: List[Order], categories: Optional[List[Category]]) -> str:
    # Fields are joined as-is, not quoted; consumers of this file rely on that.
    lines = [",".join(HEADER)]
    for order in orders:
        row = [
            order.order_id or "",
            order.customer or "",
            category_name(order.category, categories),
            format_date(order.date),
            order.source or "",
            format_amount(order.amount),
        ]
        if any("," in field for field in row):
            log.warning(f"Order {order.order_id} has a comma in a field; CSV columns will shift")
        lines.append(",".join(row))
    return "\n".join(lines)
