# services/reports.py

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import List

from models import Order
from services.csv_export import format_date


@dataclass
class Report:
    order_count: int = 0
    revenue: float = 0.0
    by_source: List[dict] = field(default_factory=list)   # [{"source", "count"}]
    by_date: List[dict] = field(default_factory=list)     # [{"date", "revenue"}]

    def chart_data(self) -> dict:
        return {
            "sources": [r["source"] for r in self.by_source],
            "sourceCounts": [r["count"] for r in self.by_source],
            "dates": [r["date"] for r in self.by_date],
            "revenue": [r["revenue"] for r in self.by_date],
        }


def build_report(orders: List[Order]) -> Report:
    """Orders per source (first-seen order) and revenue per calendar day (ascending)."""
    sources: "OrderedDict[str, int]" = OrderedDict()
    revenue_by_day: dict = {}
    total = 0.0

    for o in orders:
        src = o.source or "Unknown"
        sources[src] = sources.get(src, 0) + 1

        day = format_date(o.date) or "Unknown"
        revenue_by_day[day] = revenue_by_day.get(day, 0.0) + o.amount
        total += o.amount

    return Report(
        order_count=len(orders),
        revenue=round(total, 2),
        by_source=[{"source": s, "count": c} for s, c in sources.items()],
        by_date=[
            {"date": d, "revenue": round(revenue_by_day[d], 2)}
            for d in sorted(revenue_by_day)
        ],
    )
