import os
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

ENV = os.getenv("ENV", "TEST").upper()

DEFAULTS = {
    "TEST": {
        "API_URL": "http://localhost:4000/api",
        "SECRET_KEY": "dev-only-secret-change-me",
        "SECURE_COOKIES": "0",
        "LOG_LEVEL": "DEBUG",
    },
    "LIVE": {
        "API_URL": "https://orders-api.internal/api",
        "SECRET_KEY": "",
        "SECURE_COOKIES": "1",
        "LOG_LEVEL": "INFO",
    }
}

cfg = DEFAULTS["LIVE"] if ENV == "LIVE" else DEFAULTS["TEST"]

API_URL    = os.getenv("ORDERS_API_URL", cfg["API_URL"]).rstrip("/")
SECRET_KEY = os.getenv("SECRET_KEY", cfg["SECRET_KEY"]) or cfg["SECRET_KEY"]
SECURE_COOKIES = os.getenv("SECURE_COOKIES", cfg["SECURE_COOKIES"]) == "1"

# Order list / export behavior
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
EXPORT_PAGE_SIZE = int(os.getenv("EXPORT_PAGE_SIZE", "1000"))
EXPORT_MAX_PAGES = int(os.getenv("EXPORT_MAX_PAGES", "50"))
REPORT_PAGE_SIZE = int(os.getenv("REPORT_PAGE_SIZE", "1000"))
VIEW_CACHE_SIZE = int(os.getenv("VIEW_CACHE_SIZE", "500"))

# Order form bounds (same rule the order entry form has always enforced)
ORDER_AMOUNT_MIN = float(os.getenv("ORDER_AMOUNT_MIN", "1"))
ORDER_AMOUNT_MAX = float(os.getenv("ORDER_AMOUNT_MAX", "10"))

# Auth cookie
TOKEN_COOKIE = os.getenv("TOKEN_COOKIE", "token")
TOKEN_MAX_AGE_DAYS = int(os.getenv("TOKEN_MAX_AGE_DAYS", "7"))

DISPLAY_TZ = os.getenv("DISPLAY_TZ", "UTC")
HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "30"))

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5050"))

# ---------------- Paths (stable, absolute) ----------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Logging
LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))
LOG_FILE = os.getenv("LOG_FILE", "orders_dashboard.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", cfg["LOG_LEVEL"]).upper()


# -------------- HTTP Session --------------
def build_http_session() -> requests.Session:
    session = requests.Session()
    retries = Retry(
        total=3,
        backoff_factor=1.0,
        status_forcelist=[502, 503, 504],
        allowed_methods=["GET", "PUT", "DELETE"],
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
    return session

SESSION = build_http_session()
