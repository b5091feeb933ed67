#api.py
from typing import Optional, Callable, List, Dict, Any

import requests

from config import API_URL, HTTP_TIMEOUT
from exceptions import GatewayError, AuthenticationRequired
from models import AuthResult, Category, Order, User
from logger import get_logger

log = get_logger("api")


def clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop None / empty-string values so the API never sees `search=`."""
    if not params:
        return {}
    return {k: v for k, v in params.items() if v is not None and v != ""}


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        msg = body.get("message") or body.get("error")
        if msg:
            return str(msg)
    return f"API returned {resp.status_code}"


class Gateway:
    """
    Thin wrapper over a requests.Session for the orders API.

    Attaches `Authorization: Bearer <token>` whenever token_provider returns
    one. A 401 calls on_unauthorized (once per gateway) and raises
    AuthenticationRequired; every other failure raises GatewayError.
    """

    def __init__(
        self,
        http: requests.Session,
        token_provider: Callable[[], Optional[str]],
        on_unauthorized: Optional[Callable[[], None]] = None,
        base_url: str = API_URL,
        timeout: int = HTTP_TIMEOUT,
    ):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.on_unauthorized = on_unauthorized
        self.timeout = timeout
        self._unauthorized_fired = False

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(self, method: str, path: str, params=None, json=None):
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = clean_params(params)
        log.debug(f"{method} {path} params={query}")

        try:
            resp = self.http.request(
                method,
                url,
                params=query or None,
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.error(f"{method} {path} failed: {e}")
            raise GatewayError(f"Could not reach the orders API: {e}", method=method, path=path) from e

        log.debug(f"API Response: {method} {path} -> {resp.status_code}")

        if resp.status_code == 401:
            log.warning(f"{method} {path} -> 401, clearing session")
            if not self._unauthorized_fired:
                self._unauthorized_fired = True
                if self.on_unauthorized:
                    self.on_unauthorized()
            raise AuthenticationRequired(
                _error_message(resp), status=401, method=method, path=path
            )

        if not resp.ok:
            msg = _error_message(resp)
            log.warning(f"{method} {path} -> {resp.status_code}: {msg}")
            raise GatewayError(msg, status=resp.status_code, payload=resp.text, method=method, path=path)

        if not resp.content:
            return None

        ctype = resp.headers.get("Content-Type", "")
        if "text/csv" in ctype or "text/plain" in ctype:
            return resp.text

        try:
            return resp.json()
        except ValueError as e:
            raise GatewayError(
                f"API returned a non-JSON body for {method} {path}",
                status=resp.status_code, payload=resp.text, method=method, path=path,
            ) from e

    def get(self, path: str, params=None):
        return self.request("GET", path, params=params)

    def post(self, path: str, json=None):
        return self.request("POST", path, json=json)

    def put(self, path: str, json=None):
        return self.request("PUT", path, json=json)

    def patch(self, path: str, json=None):
        return self.request("PATCH", path, json=json)

    def delete(self, path: str):
        return self.request("DELETE", path)


# ---------------- Resource clients ----------------
def _auth_result(body) -> AuthResult:
    if not isinstance(body, dict) or not body.get("token"):
        raise GatewayError("Login response did not include a token", payload=body)
    return AuthResult(token=str(body["token"]), user=User.from_api(body.get("user") or {}))


class AuthAPI:
    def __init__(self, gateway: Gateway):
        self.gw = gateway

    def login(self, email: str, password: str) -> AuthResult:
        return _auth_result(self.gw.post("/auth/login", json={"email": email, "password": password}))

    def register(self, fields: Dict[str, Any]) -> Optional[AuthResult]:
        # some deployments answer {success: true} and expect a separate login
        body = self.gw.post("/auth/register", json=fields)
        if isinstance(body, dict) and body.get("token"):
            return _auth_result(body)
        return None

    def seed_admin(self) -> Dict[str, Any]:
        return self.gw.post("/auth/seed-admin") or {}

    def list_users(self) -> List[User]:
        body = self.gw.get("/auth/users")
        if not isinstance(body, list):
            return []
        return [User.from_api(u) for u in body if isinstance(u, dict)]


class CategoryAPI:
    def __init__(self, gateway: Gateway):
        self.gw = gateway

    def list(self) -> List[Category]:
        body = self.gw.get("/categories")
        if isinstance(body, dict):
            body = body.get("data")
        if not isinstance(body, list):
            log.warning(f"GET /categories returned {type(body).__name__}, treating as empty")
            return []
        return [Category.from_api(c) for c in body if isinstance(c, dict)]

    def get(self, category_id: str) -> Category:
        return Category.from_api(self.gw.get(f"/categories/{category_id}") or {})

    def create(self, fields: Dict[str, Any]) -> Category:
        return Category.from_api(self.gw.post("/categories", json=fields) or {})

    def update(self, category_id: str, fields: Dict[str, Any]) -> Category:
        return Category.from_api(self.gw.put(f"/categories/{category_id}", json=fields) or {})

    def delete(self, category_id: str):
        return self.gw.delete(f"/categories/{category_id}")


class OrderAPI:
    def __init__(self, gateway: Gateway):
        self.gw = gateway

    def list(self, params: Optional[Dict[str, Any]] = None):
        # Raw body; services.order_list normalizes the shape.
        return self.gw.get("/orders", params=params)

    def get(self, order_id: str) -> Order:
        return Order.from_api(self.gw.get(f"/orders/{order_id}") or {})

    def create(self, fields: Dict[str, Any]) -> Order:
        return Order.from_api(self.gw.post("/orders", json=fields) or {})

    def update(self, order_id: str, fields: Dict[str, Any]) -> Order:
        return Order.from_api(self.gw.put(f"/orders/{order_id}", json=fields) or {})

    def delete(self, order_id: str):
        return self.gw.delete(f"/orders/{order_id}")

    def mark_viewed(self, order_id: str):
        return self.gw.patch(f"/orders/{order_id}/viewed")

    def export_csv(self, params: Optional[Dict[str, Any]] = None) -> str:
        body = self.gw.get("/orders/export", params=params)
        if body is None:
            return ""
        if isinstance(body, (bytes, bytearray)):
            return body.decode("utf-8", errors="replace")
        return str(body)
