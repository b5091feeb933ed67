# scripts/export_orders.py
#
# Headless version of the "Export CSV" button, for scheduled jobs.
#   python scripts/export_orders.py --email ops@example.com --password ... --start 2024-01-01
#   ORDERS_API_TOKEN=... python scripts/export_orders.py --out exports/
import argparse
import os, sys
from datetime import date

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from config import API_URL, SESSION
from api import Gateway, AuthAPI, CategoryAPI, OrderAPI
from exceptions import ExportFailed, GatewayError
from session_store import SessionStore
from services.order_filters import FilterState
from services.csv_export import build_csv, collect_orders, export_filename
from logger import get_logger

log = get_logger("export_orders")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Export filtered orders to CSV.")
    p.add_argument("--email")
    p.add_argument("--password")
    p.add_argument("--search", default="")
    p.add_argument("--category", default="", help="category id")
    p.add_argument("--start", default="", help="start date YYYY-MM-DD")
    p.add_argument("--end", default="", help="end date YYYY-MM-DD")
    p.add_argument("--out", default=".", help="output directory")
    return p.parse_args(argv)


def run(args, http=SESSION, today=None, base_url=API_URL) -> str:
    store = SessionStore(token=os.getenv("ORDERS_API_TOKEN"))
    gw = Gateway(
        http,
        token_provider=store.get_token,
        on_unauthorized=lambda: store.teardown("401"),
        base_url=base_url,
    )

    if args.email and args.password:
        store.login(AuthAPI(gw), args.email, args.password)
    if not store.is_authenticated:
        raise SystemExit("No credentials: pass --email/--password or set ORDERS_API_TOKEN")

    filters = FilterState(
        search=args.search,
        category=args.category,
        start_date=args.start,
        end_date=args.end,
    )
    orders = collect_orders(OrderAPI(gw), filters)
    categories = CategoryAPI(gw).list()

    os.makedirs(args.out, exist_ok=True)
    path = os.path.join(args.out, export_filename(today or date.today()))
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(build_csv(orders, categories))

    log.info(f"Wrote {len(orders)} orders to {path}")
    return path


def main(argv=None) -> int:
    log.info("===== EXPORT START =====")
    try:
        path = run(parse_args(argv), http=SESSION, base_url=API_URL)
    except (GatewayError, ExportFailed) as e:
        log.error(f"Export failed: {e}")
        print(f"ERROR: {e}")
        return 1
    finally:
        log.info("===== EXPORT END =====")
    print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
